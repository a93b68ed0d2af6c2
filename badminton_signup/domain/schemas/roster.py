import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, StringConstraints
from typing import Optional, Literal, Annotated

Pin = Annotated[str, StringConstraints(pattern=r"^\d{4}$")]
PlayerName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


# ---------- players ----------
class SignupIn(BaseModel):
    name: PlayerName
    pin: Pin


class CancelIn(BaseModel):
    pin: Pin


class PlayerPatchIn(BaseModel):
    paid: bool


class RegistrantOut(BaseModel):
    """Read projection of a registrant. The cancel code is deliberately absent."""
    id: uuid.UUID
    session_id: uuid.UUID
    name: str
    position: int
    waitlisted: bool
    paid: bool
    signed_up_at: datetime

    @classmethod
    def from_model(cls, r) -> "RegistrantOut":
        return cls(
            id=r.id,
            session_id=r.session_id,
            name=r.name,
            position=r.position,
            waitlisted=r.waitlisted,
            paid=r.paid,
            signed_up_at=r.signed_up_at,
        )


class CancelOut(BaseModel):
    removed: RegistrantOut
    promoted: Optional[RegistrantOut] = None


# ---------- sessions ----------
class SessionCreateIn(BaseModel):
    date: date
    courts: Literal[2, 3] = 2


class SessionPatchIn(BaseModel):
    """Only the fields present in the request body are applied."""
    courts: Optional[Literal[2, 3]] = None
    cost: Optional[Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]] = None
    archived: Optional[bool] = None

    @field_validator("courts", "archived")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v


class SessionOut(BaseModel):
    id: uuid.UUID
    date: date
    courts: int
    max_players: int
    cost: Optional[Decimal] = None
    archived: bool
    created_at: datetime

    @classmethod
    def from_model(cls, s) -> "SessionOut":
        return cls(
            id=s.id,
            date=s.date,
            courts=s.courts,
            max_players=s.max_players,
            cost=s.cost,
            archived=s.archived,
            created_at=s.created_at,
        )


class SessionWithStatsOut(SessionOut):
    main_count: int
    waitlist_count: int
    spots_left: int
    cost_per_player: Optional[Decimal] = None


class RosterOut(BaseModel):
    session: SessionWithStatsOut
    players: list[RegistrantOut]
    waitlist: list[RegistrantOut]


class RolloverOut(BaseModel):
    archived: int
    target_date: date
    created: bool
    session_id: uuid.UUID
