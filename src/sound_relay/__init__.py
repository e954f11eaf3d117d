"""Segmented audio capture and delivery."""

__version__ = "0.1.0"
