"""Version information for grove."""

__version__ = "0.1.0"
