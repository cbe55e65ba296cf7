"""Numera CFO assistant: conversational agent runtime."""

__version__ = "0.1.0"
