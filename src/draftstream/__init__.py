"""Streaming dialogue segmentation and persistence for script-writing projects."""

__version__ = "0.1.0"
