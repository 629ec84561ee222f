"""Lumio — asynchronous document extraction and content analysis."""

__version__ = "1.0.0"
