"""Storage layer of a beacon chain explorer: records, SQLite access, caching and object storage."""

__version__ = "0.1.0"