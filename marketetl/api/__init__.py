"""API module with routers and dependencies."""

from .app import create_api_app
from .dependencies import (
    get_batch_processor,
    get_queue_controller,
    require_cron_secret,
)


__all__ = [
    "create_api_app",
    "get_batch_processor",
    "get_queue_controller",
    "require_cron_secret",
]
