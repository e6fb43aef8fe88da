"""Tests for a full matching run against a temporary database."""

import random
import tempfile
from datetime import date
from pathlib import Path

import pytest

from coffee_pairing.core.config import PairingConfig
from coffee_pairing.core.errors import InsufficientFallbackError
from coffee_pairing.services.matching.pairing import Pair
from coffee_pairing.services.matching.service import MatchingService
from coffee_pairing.services.notify import FakeNotifier
from coffee_pairing.services.storage import (
    MatchRepository,
    UserRepository,
    create_db_engine,
)

MONDAY = date(2024, 1, 8)
NEXT_MONDAY = date(2024, 1, 15)
SATURDAY = date(2024, 1, 13)


@pytest.fixture
def engine():
    """Create a throwaway DuckDB database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_engine = create_db_engine(f"duckdb:///{Path(tmpdir) / 'coffee.duckdb'}")
        yield db_engine
        db_engine.dispose()


@pytest.fixture
def config():
    """Deterministic config: no shuffling, one fallback."""
    return PairingConfig(fallback_emails=["odd@rc.com"], shuffle=False, seed=42)


def _service(config, engine, notifier=None):
    return MatchingService(
        config,
        UserRepository(engine),
        MatchRepository(engine),
        notifier or FakeNotifier(config.notify.message_template),
        random.Random(config.seed),
    )


async def _add_users(engine, *emails):
    users = UserRepository(engine)
    for email in emails:
        await users.add_user(email, email.split("@")[0].title())


class TestMatchingService:
    """Tests for MatchingService.run."""

    async def test_run_pairs_stores_and_notifies(self, config, engine):
        """Test a run pairs everyone, stores matches and sends messages."""
        await _add_users(engine, "a@rc.com", "b@rc.com", "c@rc.com")
        notifier = FakeNotifier("{name} + {partner_name}")
        service = _service(config, engine, notifier)

        result = await service.run(MONDAY)

        assert result.date == MONDAY
        assert result.pairs == [
            Pair("a@rc.com", "b@rc.com"),
            Pair("c@rc.com", "odd@rc.com", is_fallback=True),
        ]
        assert result.participant_count == 3
        assert result.messages_sent == 2
        assert [m.content for m in notifier.sent] == ["A + B", "C + odd@rc.com"]
        assert await MatchRepository(engine).count() == 2

    async def test_registered_fallback_is_named(self, config, engine):
        """Test a fallback volunteer who is a known user is greeted by name."""
        await _add_users(engine, "a@rc.com")
        await UserRepository(engine).add_user("odd@rc.com", "Volunteer", coffee_days="0")
        notifier = FakeNotifier("{name} + {partner_name}")

        await _service(config, engine, notifier).run(MONDAY)

        assert [m.content for m in notifier.sent] == ["A + Volunteer"]

    async def test_scheduled_volunteer_is_not_their_own_fallback(self, engine):
        """Test a volunteer scheduled that day is paired once, never with themselves."""
        await _add_users(engine, "a@rc.com", "b@rc.com", "odd@rc.com")
        config = PairingConfig(
            fallback_emails=["odd@rc.com", "spare@rc.com"], shuffle=False, seed=42
        )

        result = await _service(config, engine).run(MONDAY)

        assert result.pairs == [
            Pair("a@rc.com", "b@rc.com"),
            Pair("odd@rc.com", "spare@rc.com", is_fallback=True),
        ]

    async def test_only_volunteer_scheduled_fails(self, config, engine):
        """Test an odd pool fails when the only volunteer is already in it."""
        await _add_users(engine, "a@rc.com", "b@rc.com", "odd@rc.com")

        with pytest.raises(InsufficientFallbackError):
            await _service(config, engine).run(MONDAY)

        assert await MatchRepository(engine).count() == 0

    async def test_second_run_avoids_repeats(self, config, engine):
        """Test last week's partners are not paired again when avoidable."""
        await _add_users(engine, "a@rc.com", "b@rc.com", "c@rc.com", "d@rc.com")
        service = _service(config, engine)

        first = await service.run(MONDAY)
        second = await service.run(NEXT_MONDAY)

        assert first.pairs == [Pair("a@rc.com", "b@rc.com"), Pair("c@rc.com", "d@rc.com")]
        assert second.pairs == [Pair("a@rc.com", "c@rc.com"), Pair("b@rc.com", "d@rc.com")]

    async def test_no_one_scheduled(self, config, engine):
        """Test a day with no eligible users produces an empty result."""
        await _add_users(engine, "a@rc.com", "b@rc.com")
        notifier = FakeNotifier(config.notify.message_template)

        result = await _service(config, engine, notifier).run(SATURDAY)

        assert result.pairs == []
        assert result.messages_sent == 0
        assert notifier.sent == []

    async def test_odd_without_fallback_stores_nothing(self, engine):
        """Test an odd pool with no fallback fails before any write."""
        await _add_users(engine, "a@rc.com", "b@rc.com", "c@rc.com")
        config = PairingConfig(shuffle=False)
        notifier = FakeNotifier(config.notify.message_template)

        with pytest.raises(InsufficientFallbackError):
            await _service(config, engine, notifier).run(MONDAY)

        assert await MatchRepository(engine).count() == 0
        assert notifier.sent == []

    async def test_persist_disabled(self, engine):
        """Test dry-run style config skips storing matches."""
        await _add_users(engine, "a@rc.com", "b@rc.com")
        config = PairingConfig(persist=False)

        result = await _service(config, engine).run(MONDAY)

        assert len(result.pairs) == 1
        assert await MatchRepository(engine).count() == 0

    async def test_skipping_user_sits_out_once(self, config, engine):
        """Test a skip flag removes the user from one run, then resets."""
        await _add_users(engine, "a@rc.com", "b@rc.com", "c@rc.com")
        users = UserRepository(engine)
        await users.update_user("c@rc.com", skip_next_match=True)

        result = await _service(config, engine).run(MONDAY)

        assert result.pairs == [Pair("a@rc.com", "b@rc.com")]
        assert (await users.get_user("c@rc.com")).skip_next_match is False

    async def test_shuffle_is_seeded(self, engine):
        """Test the same seed gives the same shuffled pairing."""
        emails = [f"user{i}@rc.com" for i in range(8)]
        await _add_users(engine, *emails)
        config = PairingConfig(shuffle=True, seed=7, persist=False)

        first = await _service(config, engine).run(MONDAY)
        second = await _service(config, engine).run(MONDAY)

        assert first.pairs == second.pairs
        used = sorted(i for pair in first.pairs for i in pair.members())
        assert used == sorted(emails)
