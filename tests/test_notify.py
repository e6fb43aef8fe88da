"""Tests for match notification."""

import json
from unittest.mock import AsyncMock
from urllib.parse import parse_qs

import httpx
import pytest

from coffee_pairing.core.config import NotifyConfig
from coffee_pairing.core.errors import APIKeyError
from coffee_pairing.services.matching.pairing import Pair
from coffee_pairing.services.notify import (
    FakeNotifier,
    Message,
    ZulipNotifier,
    create_notifier,
    render_messages,
)

TEMPLATE = "{name} meets {partner_name} <{partner_email}>"
SITE = "https://rc.zulipchat.com"


class TestRenderMessages:
    """Tests for message rendering."""

    def test_one_message_per_pair_to_both_members(self):
        """Test each pair gets a single message addressed to both people."""
        pairs = [Pair("a@rc.com", "b@rc.com"), Pair("c@rc.com", "d@rc.com")]
        names = {"a@rc.com": "Ada", "b@rc.com": "Bo", "c@rc.com": "Cy", "d@rc.com": "Di"}

        messages = render_messages(pairs, names, TEMPLATE)

        assert messages == [
            Message(("a@rc.com", "b@rc.com"), "Ada meets Bo <b@rc.com>"),
            Message(("c@rc.com", "d@rc.com"), "Cy meets Di <d@rc.com>"),
        ]

    def test_unknown_names_fall_back_to_email(self):
        """Test fallback partners without names are shown by email."""
        pairs = [Pair("a@rc.com", "odd@rc.com", is_fallback=True)]

        messages = render_messages(pairs, {"a@rc.com": "Ada"}, TEMPLATE)

        assert messages[0].content == "Ada meets odd@rc.com <odd@rc.com>"
        assert messages[0].recipients == ("a@rc.com", "odd@rc.com")


class TestFakeNotifier:
    """Tests for fake notifier."""

    async def test_records_messages(self):
        """Test fake notifier keeps every message it would send."""
        notifier = FakeNotifier(TEMPLATE)
        pairs = [Pair("a@rc.com", "b@rc.com")]

        sent = await notifier.send_pairs(pairs, {})

        assert sent == 1
        assert notifier.sent[0].recipients == ("a@rc.com", "b@rc.com")

    async def test_no_pairs_sends_nothing(self):
        """Test an empty run sends no messages."""
        notifier = FakeNotifier(TEMPLATE)
        assert await notifier.send_pairs([], {}) == 0
        assert notifier.sent == []


class TestZulipNotifier:
    """Tests for Zulip REST client."""

    async def test_posts_private_message(self):
        """Test the request shape sent to Zulip."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"result": "success", "id": 42})

        notifier = ZulipNotifier(
            SITE + "/", "bot@rc.com", "secret", TEMPLATE, transport=httpx.MockTransport(handler)
        )
        try:
            sent = await notifier.send_pairs(
                [Pair("a@rc.com", "b@rc.com")], {"a@rc.com": "Ada", "b@rc.com": "Bo"}
            )
        finally:
            await notifier.close()

        assert sent == 1
        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{SITE}/api/v1/messages"
        assert request.headers["Authorization"].startswith("Basic ")
        form = parse_qs(request.content.decode())
        assert form["type"] == ["private"]
        assert json.loads(form["to"][0]) == ["a@rc.com", "b@rc.com"]
        assert form["content"] == ["Ada meets Bo <b@rc.com>"]

    async def test_retries_http_status_error(self, monkeypatch: pytest.MonkeyPatch):
        """Test a server error is retried before succeeding."""
        notifier = ZulipNotifier(SITE, "bot@rc.com", "secret", TEMPLATE)
        request = httpx.Request("POST", notifier.url)
        response_500 = httpx.Response(500, request=request, json={"result": "error"})
        response_ok = httpx.Response(200, request=request, json={"result": "success", "id": 1})
        post_mock = AsyncMock(side_effect=[response_500, response_ok])
        monkeypatch.setattr(notifier.client, "post", post_mock)

        try:
            await notifier.send(Message(("a@rc.com", "b@rc.com"), "hi"))
            assert post_mock.await_count == 2
        finally:
            await notifier.close()

    async def test_request_error_exhausts_after_three_attempts(
        self, monkeypatch: pytest.MonkeyPatch
    ):
        """Test transport errors are raised after retries run out."""
        notifier = ZulipNotifier(SITE, "bot@rc.com", "secret", TEMPLATE)
        request = httpx.Request("POST", notifier.url)
        post_mock = AsyncMock(side_effect=httpx.ConnectTimeout("timeout", request=request))
        monkeypatch.setattr(notifier.client, "post", post_mock)

        try:
            with pytest.raises(httpx.ConnectTimeout):
                await notifier.send(Message(("a@rc.com", "b@rc.com"), "hi"))
            assert post_mock.await_count == 3
        finally:
            await notifier.close()


class TestCreateNotifier:
    """Tests for notifier factory."""

    def test_dry_run_returns_fake(self):
        """Test dry runs never need credentials."""
        notifier = create_notifier(NotifyConfig(), dry_run=True)
        assert isinstance(notifier, FakeNotifier)

    def test_missing_credentials_raise(self, monkeypatch: pytest.MonkeyPatch):
        """Test real sending requires bot email and API key."""
        monkeypatch.delenv("ZULIP_API_KEY", raising=False)
        with pytest.raises(APIKeyError):
            create_notifier(NotifyConfig(bot_email="bot@rc.com"))
        with pytest.raises(APIKeyError):
            create_notifier(NotifyConfig(api_key="secret"))

    async def test_credentials_return_zulip(self):
        """Test configured credentials build a Zulip notifier."""
        notifier = create_notifier(NotifyConfig(bot_email="bot@rc.com", api_key="secret"))
        try:
            assert isinstance(notifier, ZulipNotifier)
            assert notifier.url == "https://recurse.zulipchat.com/api/v1/messages"
        finally:
            await notifier.close()
