"""crosscut: DSM-5 Level-1 cross-cutting screening interview engine."""

__version__ = "0.1.0"
