"""Events API routes."""

from typing import Optional

from fastapi import APIRouter, Depends

from pointmarket.api.dependencies import get_service, get_token
from pointmarket.pricing import Quote
from pointmarket.schemas import (
    BetRequest,
    EventCreateRequest,
    MarketSnapshot,
    OkResponse,
    PlacedBet,
    ResolveRequest,
    Settlement,
)
from pointmarket.service import MarketService
from pointmarket.storage import Event

router = APIRouter(prefix="/api/events", tags=["Events"])


@router.get("", response_model=MarketSnapshot)
def list_events(
    token: Optional[str] = Depends(get_token),
    service: MarketService = Depends(get_service),
):
    """List events with live prices, plus the caller's own bets."""
    return service.list_events(token)


@router.post("", status_code=201)
def create_event(
    request: EventCreateRequest,
    token: Optional[str] = Depends(get_token),
    service: MarketService = Depends(get_service),
) -> dict[str, Event]:
    """Open a new event."""
    event = service.create_event(token, request.description, request.initial_price)
    return {"event": event}


@router.get("/{event_id}/quote", response_model=Quote)
def get_quote(
    event_id: str,
    token: Optional[str] = Depends(get_token),
    service: MarketService = Depends(get_service),
):
    """Current yes/no prices for one event."""
    return service.quote(token, event_id)


@router.post("/{event_id}/bet", response_model=PlacedBet, status_code=201)
def place_bet(
    event_id: str,
    request: BetRequest,
    token: Optional[str] = Depends(get_token),
    service: MarketService = Depends(get_service),
):
    """Bet on an open event at the live price."""
    return service.place_bet(token, event_id, request.direction)


@router.post("/{event_id}/close", response_model=OkResponse)
def close_event(
    event_id: str,
    token: Optional[str] = Depends(get_token),
    service: MarketService = Depends(get_service),
):
    """Stop accepting bets. Admin only."""
    service.close_event(token, event_id)
    return OkResponse()


@router.post("/{event_id}/resolve", response_model=Settlement)
def resolve_event(
    event_id: str,
    request: ResolveRequest,
    token: Optional[str] = Depends(get_token),
    service: MarketService = Depends(get_service),
):
    """Settle an event and pay out winners. Admin only."""
    return service.resolve_event(token, event_id, request.outcome)
