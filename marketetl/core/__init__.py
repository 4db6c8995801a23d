"""Core infrastructure: settings, logging, exceptions, pacing, shared secret."""

from .config import Settings, get_settings, settings
from .exceptions import (
    AppException,
    AuthenticationError,
    ConfigurationError,
    FailureReason,
    PersistenceError,
    ProviderError,
    StoreError,
)
from .pacer import Pacer, build_pacer
from .security import extract_bearer_token, verify_shared_secret


__all__ = [
    "AppException",
    "AuthenticationError",
    "ConfigurationError",
    "FailureReason",
    "Pacer",
    "PersistenceError",
    "ProviderError",
    "Settings",
    "StoreError",
    "build_pacer",
    "extract_bearer_token",
    "get_settings",
    "settings",
    "verify_shared_secret",
]
