"""Relationship mapping core: persons, relations, filtering, sync and exchange."""

__version__ = "0.1.0"
