"""Drains object storage directories into Azure Data Explorer tables."""

__version__ = "0.1.0"
