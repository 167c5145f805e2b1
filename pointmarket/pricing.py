"""Demand-driven pricing.

Prices are recomputed from the wager ledger on every read. Nothing derived is
stored.
"""

from pydantic import BaseModel

from pointmarket.storage.catalog import Event
from pointmarket.storage.wagers import Wager

DEFAULT_PRICE_INCREMENT = 5


class Quote(BaseModel):
    """Current points cost of each direction."""

    yes: int
    no: int

    def for_direction(self, direction: str) -> int:
        if direction == "yes":
            return self.yes
        if direction == "no":
            return self.no
        raise ValueError(f"Unknown direction: {direction}")


def quote_prices(
    event: Event,
    wagers: list[Wager],
    increment: int = DEFAULT_PRICE_INCREMENT,
) -> Quote:
    """Base price plus ``increment`` per existing wager on the same side.

    Wagers belonging to other events are ignored.
    """
    yes_count = 0
    no_count = 0
    for wager in wagers:
        if wager.event_id != event.id:
            continue
        if wager.direction == "yes":
            yes_count += 1
        else:
            no_count += 1

    return Quote(
        yes=event.base_yes_price + increment * yes_count,
        no=event.base_no_price + increment * no_count,
    )
