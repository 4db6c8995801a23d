"""Daily market-data ETL: task queue, provider adapters, merge, and tags."""

__version__ = "1.0.0"
