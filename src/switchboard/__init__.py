"""Switch and sync provider profiles for AI coding tools."""

__version__ = "0.1.0"
