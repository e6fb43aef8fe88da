import uuid
from datetime import date

from sqlmodel import Field, SQLModel


class Match(SQLModel, table=True):
    """A coffee chat pairing made on a given day."""

    __tablename__ = "matches"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_1_email: str = Field(index=True)
    user_2_email: str = Field(index=True)
    matched_on: date = Field(index=True)
    is_fallback: bool = False
