"""switchboard: command registry and dispatch gate for chat bots."""

__version__ = "0.1.0"
