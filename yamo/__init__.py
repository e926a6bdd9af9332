"""yamo - block submission continuity and content-bundle integrity."""

__version__ = "0.3.0"
