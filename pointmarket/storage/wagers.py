"""Wager ledger: append-only bet records."""

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from pointmarket.exceptions import StorageError
from pointmarket.storage.tables import Record, TableStore, TableWrite

WAGERS_TABLE = "bets"
WAGER_FIELDS = ("id", "event_id", "username", "direction", "price", "created_at")

Direction = Literal["yes", "no"]
DIRECTIONS: tuple[str, ...] = ("yes", "no")


def generate_wager_id() -> str:
    """Generate unique wager ID with bet_ prefix."""
    return f"bet_{uuid4().hex}"


class Wager(BaseModel):
    """One row of the bets table. Never mutated after creation."""

    id: str
    event_id: str
    username: str
    direction: Direction
    price: int = Field(gt=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> Record:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "username": self.username,
            "direction": self.direction,
            "price": str(self.price),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Record) -> "Wager":
        try:
            return cls(
                id=record["id"],
                event_id=record["event_id"],
                username=record["username"],
                direction=record["direction"],
                price=int(record["price"]),
                created_at=record["created_at"],
            )
        except (KeyError, ValueError, PydanticValidationError) as e:
            raise StorageError(
                f"Corrupt row in {WAGERS_TABLE} table: {record.get('id', '?')}"
            ) from e


def wagers_for_event(wagers: list[Wager], event_id: str) -> list[Wager]:
    return [w for w in wagers if w.event_id == event_id]


def has_wager(wagers: list[Wager], event_id: str, username: str) -> bool:
    return any(w.event_id == event_id and w.username == username for w in wagers)


class WagerLedger:
    """Typed access to the bets table."""

    def __init__(self, store: TableStore):
        self.store = store

    def load(self) -> list[Wager]:
        return [Wager.from_record(r) for r in self.store.load(WAGERS_TABLE)]

    def build_write(self, wagers: list[Wager]) -> TableWrite:
        return TableWrite(WAGERS_TABLE, WAGER_FIELDS, [w.to_record() for w in wagers])

    def initialize(self) -> bool:
        return self.store.initialize(WAGERS_TABLE, WAGER_FIELDS)
