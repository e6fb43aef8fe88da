from .database import create_db_engine
from .match_repository import MatchRepository
from .user_repository import UserRepository

__all__ = ["MatchRepository", "UserRepository", "create_db_engine"]
