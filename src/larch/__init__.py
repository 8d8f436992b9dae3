"""Larch: architecture convention checks for Laravel applications."""

__version__ = "0.1.0"
