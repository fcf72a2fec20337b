"""Activity scheduling and calendar conflict-resolution engine."""

__version__ = "0.1.0"
