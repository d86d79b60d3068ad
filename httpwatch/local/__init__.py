"""
Local package for the HttpWatch service.

This package provides the merged configuration through the `effective_settings`
singleton, the service exceptions and the supervisor package.
"""

from .config import effective_settings, MergedSettings
from .errors import ConfigurationError, StartError

__all__ = ["effective_settings", "MergedSettings", "ConfigurationError", "StartError"]
