"""Offline-first sync engine for the idea assistant notes and tasks app."""

__version__ = "1.0.0"
