"""newsvault: periodic news discovery and archiving."""

__version__ = "0.1.0"
