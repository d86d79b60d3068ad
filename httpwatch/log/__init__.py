"""
Logging module for the HttpWatch service.
This module configures the console and rolling file sinks.
"""

from .setup import setup_logging

__all__ = ["setup_logging"]
