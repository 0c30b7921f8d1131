"""Skyjo game engine: rules, scoring and CPU players."""

__version__ = "0.1.0"
