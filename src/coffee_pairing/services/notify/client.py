"""Zulip notification client with async support and retries."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from coffee_pairing.core.config import NotifyConfig
from coffee_pairing.core.errors import APIKeyError
from coffee_pairing.services.matching.pairing import Pair

logger = structlog.get_logger()


@dataclass(frozen=True)
class Message:
    """A private message to one or more recipients."""

    recipients: tuple[str, ...]
    content: str


def render_messages(
    pairs: Sequence[Pair], names: Mapping[str, str], template: str
) -> list[Message]:
    """Build one group message per pair.

    Names fall back to the email when unknown, which covers fallback partners.
    """
    messages = []
    for pair in pairs:
        content = template.format(
            name=names.get(pair.a, pair.a),
            partner_name=names.get(pair.b, pair.b),
            partner_email=pair.b,
        )
        messages.append(Message(recipients=pair.members(), content=content))
    return messages


class Notifier(ABC):
    """Abstract base class for async match notifiers."""

    def __init__(self, template: str) -> None:
        self.template = template

    async def send_pairs(self, pairs: Sequence[Pair], names: Mapping[str, str]) -> int:
        """Notify both members of every pair.

        Args:
            pairs: Pairs made in this run.
            names: Display names keyed by email.

        Returns:
            Number of messages sent.
        """
        sent = 0
        for message in render_messages(pairs, names, self.template):
            await self.send(message)
            sent += 1
        logger.info("notifications_sent", count=sent)
        return sent

    @abstractmethod
    async def send(self, message: Message) -> None:
        """Deliver a single message."""

    async def close(self) -> None:  # noqa: B027
        """Close any resources. Override if needed."""


class FakeNotifier(Notifier):
    """Notifier that records messages instead of sending them."""

    def __init__(self, template: str) -> None:
        super().__init__(template)
        self.sent: list[Message] = []

    async def send(self, message: Message) -> None:
        self.sent.append(message)
        logger.debug("fake_send", to=list(message.recipients))


class ZulipNotifier(Notifier):
    """Send private messages through the Zulip REST API."""

    MESSAGES_PATH = "/api/v1/messages"

    def __init__(
        self,
        site: str,
        bot_email: str,
        api_key: str,
        template: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Zulip notifier.

        Args:
            site: Zulip server base URL.
            bot_email: Bot account email used for basic auth.
            api_key: Bot API key.
            template: Message template.
            transport: Optional httpx transport (for tests).
        """
        super().__init__(template)
        self.url = site.rstrip("/") + self.MESSAGES_PATH
        self.client = httpx.AsyncClient(
            auth=(bot_email, api_key), timeout=30.0, transport=transport
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TransportError)),
        reraise=True,
    )
    async def send(self, message: Message) -> None:
        """Post a private message with retries.

        Raises:
            httpx.HTTPStatusError: On API error after retries.
        """
        logger.info("zulip_send", to=list(message.recipients))
        response = await self.client.post(
            self.url,
            data={
                "type": "private",
                "to": json.dumps(list(message.recipients)),
                "content": message.content,
            },
        )
        response.raise_for_status()
        logger.debug("zulip_response", id=response.json().get("id"))

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()


def create_notifier(config: NotifyConfig, dry_run: bool = False) -> Notifier:
    """Create the appropriate notifier for the settings.

    Args:
        config: Notification settings.
        dry_run: Record messages instead of sending them.

    Returns:
        Notifier instance.

    Raises:
        APIKeyError: If real sending is requested without credentials.
    """
    if dry_run:
        logger.info("using_fake_notifier")
        return FakeNotifier(config.message_template)

    api_key = config.get_api_key()
    if not api_key or not config.bot_email:
        raise APIKeyError
    return ZulipNotifier(config.site, config.bot_email, api_key, config.message_template)
