"""ETL services: providers, merge, tagging, batch processing, queue control."""

from . import batch_processor, merger, queue_control, session_classifier, tag_engine


__all__ = [
    "batch_processor",
    "merger",
    "queue_control",
    "session_classifier",
    "tag_engine",
]
