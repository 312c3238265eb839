"""Hulud Killer — Shai-Hulud 2.0 npm supply chain attack scanner."""

__version__ = "0.1.0"
