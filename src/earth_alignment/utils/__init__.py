"""
Utility Functions Module

This module provides common utilities used across the earth-alignment project.
- Logging setup
- Typed configuration loading
- Error types and process exit statuses
"""

from .logging import setup_logger, set_package_level
from .config import AppConfig, load_config
from .errors import (
    EarthAlignmentError,
    ConfigurationError,
    InputPathError,
    OutputPathError,
    RecordParseError,
    PlyFormatError,
    AlignmentError,
)

__all__ = [
    "setup_logger",
    "set_package_level",
    "AppConfig",
    "load_config",
    "EarthAlignmentError",
    "ConfigurationError",
    "InputPathError",
    "OutputPathError",
    "RecordParseError",
    "PlyFormatError",
    "AlignmentError",
]
