"""Custom exceptions for configuration and pairing errors."""

from __future__ import annotations


class ConfigurationError(Exception):
    """Base exception for configuration errors with optional suggestions."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"[Configuration Error] {self.message}"
        if self.suggestion:
            msg += f"\n[Suggestion] {self.suggestion}"
        return msg


class APIKeyError(ConfigurationError):
    """Error when Zulip credentials are missing."""

    def __init__(self) -> None:
        super().__init__(
            "Zulip bot email and API key required to send messages",
            "Set ZULIP_API_KEY or add notify.api_key to config.yaml, or use --dry-run.",
        )


class ValidationError(ConfigurationError):
    """Error when configuration validation fails."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(
            f"Invalid value for '{field}'",
            f"{reason}",
        )


class PairingError(Exception):
    """Base exception for failures while building or storing pairs."""


class InvalidInputError(PairingError):
    """Error when input identities are duplicated or unknown."""

    def __init__(self, message: str, identities: list[str] | None = None) -> None:
        self.identities = identities or []
        super().__init__(message)


class InsufficientFallbackError(PairingError):
    """Error when an odd participant is left over and no fallback exists."""

    def __init__(self, participant_count: int) -> None:
        self.participant_count = participant_count
        super().__init__(
            f"Cannot pair {participant_count} participants: "
            "odd count and no fallback outside the pool"
        )
