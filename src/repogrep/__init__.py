"""Local code search over SQLite FTS5 and LanceDB vectors."""

__version__ = "0.1.0"
