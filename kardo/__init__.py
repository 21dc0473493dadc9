"""Kardo: digital business cards backed by claimable physical card codes."""

__version__ = "0.1.0"
