"""Trace lane kit: timeline lanes and request details rebuilt from captured traces."""

__version__ = "0.1.0"
