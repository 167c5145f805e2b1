"""Market catalog: events and their lifecycle."""

import logging
from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from pointmarket.exceptions import StorageError
from pointmarket.storage.tables import Record, TableStore, TableWrite

logger = logging.getLogger(__name__)

EVENTS_TABLE = "events"
EVENT_FIELDS = (
    "id",
    "description",
    "base_yes_price",
    "base_no_price",
    "status",
    "outcome",
    "created_by",
    "created_at",
)

EventStatus = Literal["open", "closed", "resolved"]
Outcome = Literal["yes", "no"]

MIN_PRICE = 1
MAX_PRICE = 99

# Lifecycle: open -> closed -> resolved, or open -> resolved. resolved is terminal.
TRANSITIONS: dict[str, frozenset[str]] = {
    "open": frozenset({"closed", "resolved"}),
    "closed": frozenset({"resolved"}),
    "resolved": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    """Check whether ``current -> target`` is a legal lifecycle step."""
    return target in TRANSITIONS.get(current, frozenset())


def clamp_price(value: int) -> int:
    return max(MIN_PRICE, min(MAX_PRICE, value))


def generate_event_id() -> str:
    """Generate unique event ID with evt_ prefix."""
    return f"evt_{uuid4().hex}"


class Event(BaseModel):
    """One row of the events table."""

    id: str
    description: str
    base_yes_price: int = Field(ge=MIN_PRICE, le=MAX_PRICE)
    base_no_price: int = Field(ge=MIN_PRICE, le=MAX_PRICE)
    status: EventStatus = "open"
    outcome: Outcome | None = None
    created_by: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> Record:
        return {
            "id": self.id,
            "description": self.description,
            "base_yes_price": str(self.base_yes_price),
            "base_no_price": str(self.base_no_price),
            "status": self.status,
            "outcome": self.outcome or "",
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Record) -> "Event":
        try:
            return cls(
                id=record["id"],
                description=record["description"],
                base_yes_price=int(record["base_yes_price"]),
                base_no_price=int(record["base_no_price"]),
                status=record["status"],
                outcome=record.get("outcome") or None,
                created_by=record["created_by"],
                created_at=record["created_at"],
            )
        except (KeyError, ValueError, PydanticValidationError) as e:
            raise StorageError(
                f"Corrupt row in {EVENTS_TABLE} table: {record.get('id', '?')}"
            ) from e

    def transitioned(self, target: EventStatus, outcome: Outcome | None = None) -> "Event":
        """Return a copy moved to ``target``. Callers check ``can_transition`` first."""
        if not can_transition(self.status, target):
            raise ValueError(f"Illegal transition {self.status} -> {target}")
        update: dict = {"status": target}
        if target == "resolved":
            update["outcome"] = outcome
        return self.model_copy(update=update)


def find_event(events: list[Event], event_id: str) -> Event | None:
    for event in events:
        if event.id == event_id:
            return event
    return None


class EventCatalog:
    """Typed access to the events table."""

    def __init__(self, store: TableStore):
        self.store = store

    def load(self) -> list[Event]:
        return [Event.from_record(r) for r in self.store.load(EVENTS_TABLE)]

    def get(self, event_id: str) -> Event | None:
        return find_event(self.load(), event_id)

    def build_write(self, events: list[Event]) -> TableWrite:
        return TableWrite(EVENTS_TABLE, EVENT_FIELDS, [e.to_record() for e in events])

    def initialize(self) -> bool:
        return self.store.initialize(EVENTS_TABLE, EVENT_FIELDS)
