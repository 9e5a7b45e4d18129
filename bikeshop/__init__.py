"""Bicycle repair shop web application."""

__version__ = "0.1.0"
