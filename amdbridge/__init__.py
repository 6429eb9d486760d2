"""AMD Bridge — remote control bridge for a local music player."""

__version__ = "0.1.0"
