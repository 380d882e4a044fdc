"""Resilience patterns, a file transaction log, a versioned key-value store and exercise generation tools for labs."""

__version__ = "0.1.0"