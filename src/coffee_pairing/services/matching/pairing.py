"""Repeat-avoiding pairing for coffee chats."""

from __future__ import annotations

import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date

from coffee_pairing.core.errors import InsufficientFallbackError, InvalidInputError


@dataclass(frozen=True)
class PastMatch:
    """One earlier pairing, seen from one participant's side.

    Attributes:
        other_identity: Identity of the person they were paired with.
        date: Date of that pairing.
    """

    other_identity: str
    date: date


@dataclass
class Participant:
    """A user eligible for this run.

    Attributes:
        identity: Unique key (email).
        display_name: Name used in messages.
        history: Past matches, in any order.
    """

    identity: str
    display_name: str = ""
    history: list[PastMatch] = field(default_factory=list)


@dataclass(frozen=True)
class Pair:
    """Two identities introduced to each other in one run."""

    a: str
    b: str
    is_fallback: bool = False

    def members(self) -> tuple[str, str]:
        return self.a, self.b


def recent_partners(participant: Participant, remaining: Iterable[str]) -> list[str]:
    """List past partners still waiting for a match, oldest first.

    A partner met several times keeps the position of the oldest meeting, so
    they are the first repeat picked when no fresh candidate is left.

    Args:
        participant: The participant looking for a partner.
        remaining: Identities not yet matched in this run.

    Returns:
        Unique identities ordered by their oldest shared match date.
    """
    waiting = set(remaining)
    ordered = sorted(participant.history, key=lambda m: m.date)

    partners: list[str] = []
    for past in ordered:
        other = past.other_identity
        if other in waiting and other not in partners:
            partners.append(other)
    return partners


def make_pairs(
    participants: Sequence[Participant],
    fallbacks: Sequence[str],
    rng: random.Random | None = None,
) -> list[Pair]:
    """Pair every participant, preferring people they have not met.

    Participants are taken in input order. Each one is paired with:

    1. the earliest remaining participant they have never met, else
    2. the remaining participant they met longest ago, else
    3. a random identity from ``fallbacks`` (only the odd one out).

    Input order decides the result, so callers that want variety should
    shuffle before calling.

    Args:
        participants: Eligible participants with unique identities.
        fallbacks: Identities that may absorb an odd leftover participant.
            Any that are also participants are ignored.
        rng: Random source for the fallback draw. Defaults to a fresh
            ``random.Random()``.

    Returns:
        Pairs in the order they were made; ``ceil(len(participants) / 2)``
        of them.

    Raises:
        InvalidInputError: If two participants share an identity.
        InsufficientFallbackError: If the count is odd and no fallback is
            outside ``participants``.
    """
    _check_unique(participants)
    by_identity = {p.identity: p for p in participants}
    # a participant can never also stand in as somebody's fallback
    usable = [f for f in fallbacks if f not in by_identity]
    if len(participants) % 2 == 1 and not usable:
        raise InsufficientFallbackError(len(participants))

    rng = rng or random.Random()  # noqa: S311
    remaining = [p.identity for p in participants]
    pairs: list[Pair] = []

    while remaining:
        current = remaining.pop(0)
        repeats = recent_partners(by_identity[current], remaining)
        available = [identity for identity in remaining if identity not in repeats]

        if available:
            partner = available[0]
        elif repeats:
            partner = repeats[0]
        else:
            pairs.append(Pair(current, rng.choice(usable), is_fallback=True))
            continue

        remaining.remove(partner)
        pairs.append(Pair(current, partner))

    return pairs


def _check_unique(participants: Sequence[Participant]) -> None:
    seen: set[str] = set()
    duplicates: list[str] = []
    for p in participants:
        if p.identity in seen and p.identity not in duplicates:
            duplicates.append(p.identity)
        seen.add(p.identity)
    if duplicates:
        msg = f"Duplicate participant identities: {', '.join(duplicates)}"
        raise InvalidInputError(msg, duplicates)
