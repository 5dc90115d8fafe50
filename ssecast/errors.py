# ssecast/errors.py
"""Error types raised by the core."""


class InvalidArgument(ValueError):
    """A duration or event field was rejected before any state changed."""
