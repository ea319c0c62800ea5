"""Recurring ride scheduling service."""

__version__ = "1.0.0"
