"""Retroboard: collaborative retrospective board backend and realtime client core."""

__version__ = "0.1.0"
