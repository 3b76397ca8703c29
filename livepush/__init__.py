"""livepush: Web Push fan-out for published live updates."""

__version__ = "1.0.0"
