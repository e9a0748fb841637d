"""
Configuration Management Module.

Loads and validates Trac connection files (YAML/JSON), including files
saved with the legacy property names.
"""

from tracrpc.config.connection import (
    CONNECTION_DEFAULTS,
    ConfigurationError,
    load_connection,
)

__all__ = ["CONNECTION_DEFAULTS", "ConfigurationError", "load_connection"]
