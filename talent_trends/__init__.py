"""Talent Trends — streams top-ranked Warcraft Logs talent builds."""

__version__ = "0.1.0"
