"""Database persistence for match records."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func
from sqlmodel import Session, col, or_, select

from coffee_pairing.models import Match
from coffee_pairing.services.matching.pairing import Pair

from .database import AsyncRepository

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = structlog.get_logger()


class MatchRepository(AsyncRepository):
    """Persist and query match records."""

    def __init__(self, engine: Engine) -> None:
        super().__init__(engine)

    async def save_pairs(self, pairs: Sequence[Pair], on: date) -> list[Match]:
        """Save one match row per pair, dated ``on``."""

        def _save(session: Session) -> list[Match]:
            records = [
                Match(
                    user_1_email=pair.a,
                    user_2_email=pair.b,
                    matched_on=on,
                    is_fallback=pair.is_fallback,
                )
                for pair in pairs
            ]
            session.add_all(records)
            session.commit()
            return records

        records = await self._run_session(_save)
        logger.info("matches_saved", count=len(records), date=on.isoformat())
        return records

    async def get_history(self, email: str) -> list[Match]:
        """Get all matches involving a user, oldest first."""

        def _get(session: Session) -> list[Match]:
            statement = (
                select(Match)
                .where(or_(Match.user_1_email == email, Match.user_2_email == email))
                .order_by(col(Match.matched_on))
            )
            return list(session.exec(statement).all())

        return await self._run_session(_get)

    async def count(self) -> int:
        """Count all stored matches."""

        def _count(session: Session) -> int:
            return session.exec(select(func.count()).select_from(Match)).one()

        return await self._run_session(_count)
