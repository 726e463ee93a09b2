"""Authoritative game-session server for a drawing-and-guessing party game."""

__version__ = "0.1.0"
