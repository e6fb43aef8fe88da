"""Core configuration and errors for Coffee Pairing."""

from coffee_pairing.core.config import (
    DEFAULT_COFFEE_DAYS,
    DEFAULT_MESSAGE_TEMPLATE,
    NotifyConfig,
    PairingConfig,
    load_config,
    validate_coffee_days,
    weekday_number,
)
from coffee_pairing.core.errors import (
    APIKeyError,
    ConfigurationError,
    InsufficientFallbackError,
    InvalidInputError,
    PairingError,
    ValidationError,
)

__all__ = [
    "DEFAULT_COFFEE_DAYS",
    "DEFAULT_MESSAGE_TEMPLATE",
    "NotifyConfig",
    "PairingConfig",
    "load_config",
    "validate_coffee_days",
    "weekday_number",
    "APIKeyError",
    "ConfigurationError",
    "InsufficientFallbackError",
    "InvalidInputError",
    "PairingError",
    "ValidationError",
]
