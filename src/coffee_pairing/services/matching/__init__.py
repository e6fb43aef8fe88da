from .pairing import (
    Pair,
    Participant,
    PastMatch,
    make_pairs,
    recent_partners,
)

__all__ = [
    "Pair",
    "Participant",
    "PastMatch",
    "make_pairs",
    "recent_partners",
]
