"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging

import click

from hulud_killer import __version__


@click.group()
@click.version_option(version=__version__, prog_name="hulud-killer")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Hulud Killer — detect the Shai-Hulud 2.0 npm supply chain attack."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _register_commands() -> None:
    from hulud_killer.cli.scan import scan  # noqa: F811

    main.add_command(scan)


_register_commands()
