"""Configuration schemas and loading for Coffee Pairing."""

from __future__ import annotations

import os
import re
from datetime import date
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from coffee_pairing.core.errors import ValidationError

DEFAULT_COFFEE_DAYS = "1234"
DEFAULT_MESSAGE_TEMPLATE = (
    "Hi {name} and {partner_name}! You have been paired for a coffee chat "
    "this week. Reply here to find a time that works for both of you."
)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


def validate_coffee_days(value: str) -> str:
    """Ensure a coffee-days string only holds distinct weekday digits 0-6.

    Sunday is 0 and Saturday is 6, matching ``weekday_number``.
    """
    if not value:
        msg = "coffee_days must name at least one weekday"
        raise ValueError(msg)
    if any(ch not in "0123456" for ch in value):
        msg = f"coffee_days may only contain digits 0-6, got '{value}'"
        raise ValueError(msg)
    if len(set(value)) != len(value):
        msg = f"coffee_days contains repeated days: '{value}'"
        raise ValueError(msg)
    return "".join(sorted(value))


class NotifyConfig(BaseModel):
    """Zulip connection and message settings."""

    site: str = "https://recurse.zulipchat.com"
    bot_email: str | None = None
    api_key: str | None = None
    message_template: str = DEFAULT_MESSAGE_TEMPLATE

    @field_validator("message_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        try:
            v.format(name="", partner_name="", partner_email="")
        except (KeyError, IndexError) as e:
            msg = f"Unknown placeholder in message_template: {e}"
            raise ValueError(msg) from e
        return v

    def get_api_key(self) -> str | None:
        """Get API key from config or environment."""
        return self.api_key or os.environ.get("ZULIP_API_KEY")


class PairingConfig(BaseModel):
    """Complete configuration for a matching run."""

    database_url: str = "duckdb:///coffee_pairing.duckdb"
    fallback_emails: list[str] = Field(default_factory=list)
    shuffle: bool = True
    seed: int | None = None
    persist: bool = True
    notify: NotifyConfig = Field(default_factory=NotifyConfig)

    @field_validator("fallback_emails")
    @classmethod
    def validate_fallback_emails(cls, v: list[str]) -> list[str]:
        """Ensure fallback emails are non-empty, well formed and distinct."""
        cleaned = []
        for email in v:
            if not email or not email.strip():
                msg = "Fallback emails cannot be empty"
                raise ValueError(msg)
            email = email.strip()
            if not _EMAIL_PATTERN.match(email):
                msg = f"Invalid fallback email: '{email}'"
                raise ValueError(msg)
            cleaned.append(email)
        if len(set(cleaned)) != len(cleaned):
            msg = "Fallback emails must be unique"
            raise ValueError(msg)
        return cleaned


def load_config(path: str | Path) -> PairingConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to YAML configuration file.

    Returns:
        Validated PairingConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If the file is not a YAML mapping.
        pydantic.ValidationError: If config values are invalid.
    """
    config_path = Path(path)
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open() as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(
            str(config_path), "The top level of the config file must be a mapping."
        )

    return PairingConfig.model_validate(data)


def weekday_number(day: date) -> int:
    """Return the weekday of a date with Sunday as 0 and Saturday as 6."""
    return day.isoweekday() % 7
