"""
Error types raised by the alignment pipeline.

Each error class carries the process exit status the command line front end
returns when the error reaches it.
"""

from __future__ import annotations


EXIT_SUCCESS = 0
EXIT_UNEXPECTED = 1
EXIT_USAGE = 2
EXIT_IO = 3
EXIT_FORMAT = 4
EXIT_NUMERICAL = 5


class EarthAlignmentError(Exception):
    """Base class for all errors raised by earth_alignment."""

    exit_code: int = EXIT_UNEXPECTED


class ConfigurationError(EarthAlignmentError, ValueError):
    """Invalid or incomplete configuration."""

    exit_code = EXIT_USAGE


class InputPathError(EarthAlignmentError, OSError):
    """An input file or directory is missing or unreadable."""

    exit_code = EXIT_IO


class OutputPathError(EarthAlignmentError, OSError):
    """An output file cannot be created."""

    exit_code = EXIT_IO


class RecordParseError(EarthAlignmentError, ValueError):
    """A visual odometry record or its file name cannot be decoded."""

    exit_code = EXIT_FORMAT


class PlyFormatError(EarthAlignmentError, ValueError):
    """The point cloud document is not a supported ASCII PLY file."""

    exit_code = EXIT_FORMAT


class AlignmentError(EarthAlignmentError, RuntimeError):
    """Rigid registration could not produce a meaningful transform."""

    exit_code = EXIT_NUMERICAL
