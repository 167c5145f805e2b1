"""Pydantic schemas exchanged across the service boundary."""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from pointmarket.pricing import Quote
from pointmarket.storage import Event, Outcome, Wager


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


# ============================================================================
# Responses
# ============================================================================


class Principal(BaseSchema):
    """The authenticated account as seen by callers."""

    username: str
    is_admin: bool
    points: int


class LoginResult(BaseSchema):
    token: str
    user: Principal


class Bettors(BaseSchema):
    """Usernames that backed each direction of an event."""

    yes: list[str]
    no: list[str]


class EventView(Event):
    """Event with its live quote and bettor lists."""

    prices: Quote
    bets: Bettors


class MarketSnapshot(BaseSchema):
    events: list[EventView]
    user_wagers: list[Wager]


class PlacedBet(BaseSchema):
    bet: Wager
    price: int
    points: int


class Settlement(BaseSchema):
    """Result of resolving an event."""

    event: Event
    outcome: Outcome
    winners: list[str]
    payout: int
    total_paid: int


class OkResponse(BaseSchema):
    ok: bool = True


# ============================================================================
# Requests
# ============================================================================
# Fields are loose; the engine validates values and raises ValidationError.


class LoginRequest(BaseSchema):
    username: str = ""
    password: str = ""


class EventCreateRequest(BaseSchema):
    description: Optional[str] = None
    initial_price: Optional[int | float | str] = None


class BetRequest(BaseSchema):
    direction: Optional[str] = None


class ResolveRequest(BaseSchema):
    outcome: Optional[str] = None


class PasswordChangeRequest(BaseSchema):
    current_password: str = ""
    new_password: str = ""


class UserUpsertRequest(BaseSchema):
    username: str = ""
    password: str = ""
    is_admin: Optional[bool] = None
