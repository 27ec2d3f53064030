"""Planpilot: Plan -> Step -> Goal tracking for agent sessions."""

__version__ = "0.3.0"
