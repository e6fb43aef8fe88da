"""Matching service for running a coffee pairing round."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import date

import structlog

from coffee_pairing.core.config import PairingConfig, weekday_number
from coffee_pairing.services.matching.pairing import Pair, make_pairs
from coffee_pairing.services.notify import Notifier
from coffee_pairing.services.storage import MatchRepository, UserRepository

logger = structlog.get_logger()


@dataclass
class MatchRunResult:
    """Outcome of one matching run."""

    date: date
    pairs: list[Pair] = field(default_factory=list)
    messages_sent: int = 0

    @property
    def participant_count(self) -> int:
        return sum(1 if p.is_fallback else 2 for p in self.pairs)


class MatchingService:
    """Orchestrates loading participants, pairing, persistence and notification.

    One call to ``run`` is one scheduled round. Rounds for the same day
    should not overlap; the service does no locking of its own.
    """

    def __init__(
        self,
        config: PairingConfig,
        users: UserRepository,
        matches: MatchRepository,
        notifier: Notifier,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize matching service.

        Args:
            config: Pairing configuration.
            users: Repository for users and their history.
            matches: Repository for new match records.
            notifier: Sender for match announcements.
            rng: Random source for shuffling and the fallback draw. Defaults
                to one seeded from ``config.seed``.
        """
        self.config = config
        self.users = users
        self.matches = matches
        self.notifier = notifier
        self.rng = rng or random.Random(config.seed)  # noqa: S311

    async def run(self, on: date | None = None) -> MatchRunResult:
        """Pair everyone scheduled for ``on`` (default today).

        Raises:
            InsufficientFallbackError: Odd participant count and no fallbacks.
            InvalidInputError: Duplicate participants were loaded.
        """
        on = on or date.today()  # noqa: DTZ011
        weekday = weekday_number(on)
        logger.info("match_run_start", date=on.isoformat(), weekday=weekday)

        participants = await self.users.get_participants(weekday)
        if not participants:
            logger.info("match_run_empty", date=on.isoformat())
            return MatchRunResult(date=on)

        if self.config.shuffle:
            self.rng.shuffle(participants)

        pairs = make_pairs(participants, self.config.fallback_emails, self.rng)
        logger.info(
            "pairs_made",
            participants=len(participants),
            pairs=len(pairs),
            fallback=sum(p.is_fallback for p in pairs),
        )

        if self.config.persist:
            await self.matches.save_pairs(pairs, on)

        # fallback volunteers may be registered users with a proper name
        fallback_emails = [p.b for p in pairs if p.is_fallback]
        names = await self.users.get_names(fallback_emails) if fallback_emails else {}
        names.update({p.identity: p.display_name for p in participants})
        sent = await self.notifier.send_pairs(pairs, names)
        if self.config.persist:
            await self.users.clear_skip_flags(weekday)

        logger.info("match_run_complete", date=on.isoformat(), messages=sent)
        return MatchRunResult(date=on, pairs=pairs, messages_sent=sent)
