from .match import Match
from .user import User

__all__ = ["Match", "User"]
