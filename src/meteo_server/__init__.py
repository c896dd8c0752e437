"""Temperature / humidity ingestion and statistics service."""

__version__ = "0.1.0"
