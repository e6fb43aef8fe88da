"""Database access for users and their match history."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any

import structlog
from sqlmodel import Session, col, or_, select

from coffee_pairing.core.config import DEFAULT_COFFEE_DAYS, validate_coffee_days
from coffee_pairing.core.errors import InvalidInputError
from coffee_pairing.models import Match, User
from coffee_pairing.services.matching.pairing import Participant, PastMatch

from .database import AsyncRepository

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = structlog.get_logger()

_UPDATABLE_FIELDS = {
    "full_name",
    "coffee_days",
    "skip_next_match",
    "is_active",
}


def _eligible_statement(weekday: int) -> Any:
    return (
        select(User)
        .where(
            col(User.is_active).is_(True),
            col(User.skip_next_match).is_(False),
            col(User.coffee_days).contains(str(weekday)),
        )
        .order_by(col(User.email))
    )


class UserRepository(AsyncRepository):
    """Persist users and load the participants for a matching run."""

    def __init__(self, engine: Engine) -> None:
        super().__init__(engine)

    async def add_user(
        self, email: str, full_name: str, coffee_days: str = DEFAULT_COFFEE_DAYS
    ) -> User:
        """Register a new user.

        Raises:
            InvalidInputError: If the email is already registered.
        """
        days = validate_coffee_days(coffee_days)

        def _add(session: Session) -> User:
            existing = session.exec(select(User).where(User.email == email)).first()
            if existing:
                msg = f"User already exists: {email}"
                raise InvalidInputError(msg, [email])
            user = User(email=email, full_name=full_name, coffee_days=days)
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

        user = await self._run_session(_add)
        logger.info("user_added", email=email, coffee_days=days)
        return user

    async def get_user(self, email: str) -> User | None:
        """Get a user by email."""

        def _get(session: Session) -> User | None:
            return session.exec(select(User).where(User.email == email)).first()

        return await self._run_session(_get)

    async def update_user(self, email: str, **fields: Any) -> User:
        """Update preference fields on an existing user.

        Raises:
            InvalidInputError: If the user is unknown or a field is not updatable.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Cannot update fields: {', '.join(sorted(unknown))}"
            raise InvalidInputError(msg)
        if "coffee_days" in fields:
            fields["coffee_days"] = validate_coffee_days(fields["coffee_days"])

        def _update(session: Session) -> User:
            user = session.exec(select(User).where(User.email == email)).first()
            if user is None:
                msg = f"Unknown user: {email}"
                raise InvalidInputError(msg, [email])
            for key, value in fields.items():
                setattr(user, key, value)
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

        return await self._run_session(_update)

    async def get_eligible_users(self, weekday: int) -> list[User]:
        """Get active users scheduled on ``weekday`` who are not skipping."""

        def _get(session: Session) -> list[User]:
            return list(session.exec(_eligible_statement(weekday)).all())

        return await self._run_session(_get)

    async def get_participants(self, weekday: int) -> list[Participant]:
        """Load eligible users together with their full match history."""

        def _get(session: Session) -> list[Participant]:
            users = list(session.exec(_eligible_statement(weekday)).all())
            if not users:
                return []

            emails = [u.email for u in users]
            statement = select(Match).where(
                or_(col(Match.user_1_email).in_(emails), col(Match.user_2_email).in_(emails))
            )
            history: dict[str, list[PastMatch]] = defaultdict(list)
            for match in session.exec(statement).all():
                history[match.user_1_email].append(
                    PastMatch(other_identity=match.user_2_email, date=match.matched_on)
                )
                history[match.user_2_email].append(
                    PastMatch(other_identity=match.user_1_email, date=match.matched_on)
                )

            return [
                Participant(
                    identity=u.email,
                    display_name=u.full_name,
                    history=sorted(history[u.email], key=lambda m: m.date),
                )
                for u in users
            ]

        participants = await self._run_session(_get)
        logger.debug("participants_loaded", weekday=weekday, count=len(participants))
        return participants

    async def get_names(self, emails: list[str]) -> dict[str, str]:
        """Map known emails to full names."""

        def _get(session: Session) -> dict[str, str]:
            statement = select(User).where(col(User.email).in_(emails))
            return {u.email: u.full_name for u in session.exec(statement).all()}

        return await self._run_session(_get)

    async def clear_skip_flags(self, weekday: int) -> int:
        """Reset ``skip_next_match`` for users who sat out ``weekday``'s run.

        Returns:
            Number of users whose flag was cleared.
        """

        def _clear(session: Session) -> int:
            statement = select(User).where(
                col(User.skip_next_match).is_(True),
                col(User.coffee_days).contains(str(weekday)),
            )
            users = list(session.exec(statement).all())
            for user in users:
                user.skip_next_match = False
                session.add(user)
            session.commit()
            return len(users)

        cleared = await self._run_session(_clear)
        if cleared:
            logger.info("skip_flags_cleared", weekday=weekday, count=cleared)
        return cleared
