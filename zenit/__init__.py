"""Zenit - focus timer and study streaks."""

__version__ = "0.1.0"
