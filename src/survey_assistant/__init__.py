"""Conversational assistant for the HR survey platform."""

__version__ = "0.1.0"
