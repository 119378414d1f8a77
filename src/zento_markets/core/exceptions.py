"""Base exception for all Zento market client errors.

Each client package derives its own hierarchy from ``ZentoError`` so
callers can catch every client failure with a single ``except`` clause.
"""


class ZentoError(Exception):
    """Base exception for all Zento market client errors."""
