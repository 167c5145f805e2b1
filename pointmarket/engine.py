"""Market ledger engine: the single writer for accounts, events and wagers.

Every mutating operation follows the same discipline:

1. Reject a missing actor before touching storage
2. Validate the request arguments
3. Load each table it needs in full, under the writer lock
4. Validate against current state
5. Build new in-memory copies of the affected tables
6. Commit all affected tables together

Nothing is written until every check has passed, so a failed request leaves
the tables byte-for-byte unchanged.
"""

import logging
import threading
from typing import Optional

from pointmarket.config import Settings
from pointmarket.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InsufficientPointsError,
    NotFoundError,
    ValidationError,
)
from pointmarket.pricing import Quote, quote_prices
from pointmarket.schemas import Bettors, EventView, MarketSnapshot, PlacedBet, Settlement
from pointmarket.security import CredentialHasher
from pointmarket.storage import (
    ACCOUNTS_TABLE,
    DIRECTIONS,
    Account,
    AccountDirectory,
    Event,
    EventCatalog,
    TableStore,
    Wager,
    WagerLedger,
    can_transition,
    clamp_price,
    find_account,
    find_event,
    generate_event_id,
    generate_wager_id,
    has_wager,
    replace_account,
    wagers_for_event,
)
from pointmarket.storage.catalog import MAX_PRICE, MIN_PRICE

logger = logging.getLogger(__name__)


# ============================================================================
# Argument parsing
# ============================================================================


def _parse_direction(value: object, field: str = "direction") -> str:
    if not isinstance(value, str) or value not in DIRECTIONS:
        raise ValidationError(f"Invalid {field}: must be 'yes' or 'no'")
    return value


def _parse_initial_price(value: object) -> int:
    """Accept integers in [1, 99]; integral floats and numeric strings count as integers."""
    message = f"Initial price must be an integer from {MIN_PRICE} to {MAX_PRICE}"

    if isinstance(value, bool) or value is None:
        raise ValidationError(message)
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValidationError(message) from None
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(message)
        value = int(value)
    if not isinstance(value, int) or not MIN_PRICE <= value <= MAX_PRICE:
        raise ValidationError(message)
    return value


class MarketEngine:
    """
    Validates requests, enforces invariants and applies cross-table updates.
    """

    def __init__(self, store: TableStore, settings: Settings):
        self.store = store
        self.settings = settings
        self.accounts = AccountDirectory(store)
        self.catalog = EventCatalog(store)
        self.ledger = WagerLedger(store)
        self.hasher = CredentialHasher(
            iterations=settings.auth.hash_iterations,
            salt_bytes=settings.auth.salt_bytes,
        )
        # Serialises writers; whole-table rewrites assume one in-flight mutation.
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def bootstrap(self) -> None:
        """Create missing tables, seeding the bootstrap administrator on first run."""
        with self._lock:
            if not self.store.exists(ACCOUNTS_TABLE):
                bootstrap = self.settings.bootstrap
                password_hash, salt = self.hasher.hash(bootstrap.admin_password)
                self.accounts.initialize(
                    Account(
                        username=bootstrap.admin_username,
                        password_hash=password_hash,
                        salt=salt,
                        is_admin=True,
                        points=self.settings.market.default_points,
                    )
                )
            self.catalog.initialize()
            self.ledger.initialize()

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    @staticmethod
    def _require_actor(actor: Optional[Account]) -> Account:
        if actor is None:
            raise AuthenticationError("Unauthorized")
        return actor

    @classmethod
    def _require_admin(cls, actor: Optional[Account]) -> Account:
        actor = cls._require_actor(actor)
        if not actor.is_admin:
            raise AuthorizationError("Admin only")
        return actor

    @staticmethod
    def _require_event(events: list[Event], event_id: str) -> Event:
        event = find_event(events, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_account(self, username: str) -> Optional[Account]:
        return self.accounts.get(username)

    def authenticate(self, username: str, credential: str) -> Account:
        """Return the account if ``credential`` matches, else AuthenticationError."""
        account = self.accounts.get(username) if username else None
        if account is None or not self.hasher.verify(
            credential or "", account.password_hash, account.salt
        ):
            logger.info(f"Rejected login for {username!r}")
            raise AuthenticationError("Invalid credentials")
        return account

    def quote(self, actor: Optional[Account], event_id: str) -> Quote:
        """Live prices for one event."""
        self._require_actor(actor)
        event = self._require_event(self.catalog.load(), event_id)
        return quote_prices(event, self.ledger.load(), self.settings.market.price_increment)

    def list_events(self, actor: Optional[Account]) -> MarketSnapshot:
        """All events with live prices and bettor names, plus the actor's own wagers."""
        actor = self._require_actor(actor)
        events = self.catalog.load()
        wagers = self.ledger.load()
        increment = self.settings.market.price_increment

        views = []
        for event in events:
            event_wagers = wagers_for_event(wagers, event.id)
            views.append(
                EventView(
                    **event.model_dump(),
                    prices=quote_prices(event, event_wagers, increment),
                    bets=Bettors(
                        yes=[w.username for w in event_wagers if w.direction == "yes"],
                        no=[w.username for w in event_wagers if w.direction == "no"],
                    ),
                )
            )

        return MarketSnapshot(
            events=views,
            user_wagers=[w for w in wagers if w.username == actor.username],
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def create_event(
        self,
        actor: Optional[Account],
        description: object,
        initial_yes_price: object,
    ) -> Event:
        """
        Open a new event. Any authenticated account may propose one.

        The no side starts at ``clamp(100 - yes, 1, 99)``.
        """
        actor = self._require_actor(actor)
        if not isinstance(description, str) or not description.strip():
            raise ValidationError("Description required")
        base_yes = _parse_initial_price(initial_yes_price)

        event = Event(
            id=generate_event_id(),
            description=description.strip(),
            base_yes_price=base_yes,
            base_no_price=clamp_price(100 - base_yes),
            status="open",
            outcome=None,
            created_by=actor.username,
        )

        with self._lock:
            events = self.catalog.load()
            self.store.commit([self.catalog.build_write(events + [event])])

        logger.info(
            f"Created event {event.id} by {actor.username}: "
            f"yes={event.base_yes_price} no={event.base_no_price}"
        )
        return event

    def close_event(self, actor: Optional[Account], event_id: str) -> Event:
        """Stop accepting bets on an open event. Admin only."""
        actor = self._require_admin(actor)

        with self._lock:
            events = self.catalog.load()
            event = self._require_event(events, event_id)
            if not can_transition(event.status, "closed"):
                raise ConflictError(f"Event is {event.status}, not open")

            closed = event.transitioned("closed")
            updated = [closed if e.id == event_id else e for e in events]
            self.store.commit([self.catalog.build_write(updated)])

        logger.info(f"Closed event {event_id} by {actor.username}")
        return closed

    def resolve_event(
        self,
        actor: Optional[Account],
        event_id: str,
        outcome: object,
    ) -> Settlement:
        """
        Settle an open or closed event. Admin only.

        Process:
        1. Validate outcome and event status
        2. Credit the flat payout to every wager backing ``outcome``
        3. Mark the event resolved with its outcome
        4. Commit accounts and events together
        """
        actor = self._require_admin(actor)
        outcome = _parse_direction(outcome, field="outcome")
        payout = self.settings.market.flat_payout

        with self._lock:
            events = self.catalog.load()
            event = self._require_event(events, event_id)
            if not can_transition(event.status, "resolved"):
                raise ConflictError("Event already resolved")

            winners = [
                w for w in wagers_for_event(self.ledger.load(), event_id)
                if w.direction == outcome
            ]
            accounts = self.accounts.load()
            paid: list[str] = []
            for wager in winners:
                account = find_account(accounts, wager.username)
                if account is None:
                    logger.warning(
                        f"Wager {wager.id} references unknown account {wager.username}; "
                        "no payout"
                    )
                    continue
                accounts = replace_account(
                    accounts, account.model_copy(update={"points": account.points + payout})
                )
                paid.append(wager.username)

            resolved = event.transitioned("resolved", outcome=outcome)
            updated_events = [resolved if e.id == event_id else e for e in events]
            self.store.commit([
                self.accounts.build_write(accounts),
                self.catalog.build_write(updated_events),
            ])

        logger.info(
            f"Resolved event {event_id} as {outcome} by {actor.username}: "
            f"{len(paid)} winners x {payout} points"
        )
        return Settlement(
            event=resolved,
            outcome=outcome,
            winners=paid,
            payout=payout,
            total_paid=payout * len(paid),
        )

    # ------------------------------------------------------------------
    # Wagers
    # ------------------------------------------------------------------

    def place_bet(
        self,
        actor: Optional[Account],
        event_id: str,
        direction: object,
    ) -> PlacedBet:
        """
        Back ``direction`` on an open event at the live quoted price.

        Process:
        1. Validate direction, event status and one-bet-per-event rule
        2. Recompute the quote from current wagers
        3. Check the actor's current balance covers it
        4. Debit the balance and append the wager at the locked price
        5. Commit accounts and bets together
        """
        actor = self._require_actor(actor)
        direction = _parse_direction(direction)

        with self._lock:
            event = self._require_event(self.catalog.load(), event_id)
            if event.status != "open":
                raise ConflictError("Event is closed")

            wagers = self.ledger.load()
            if has_wager(wagers, event_id, actor.username):
                raise ConflictError("You already bet on this event")

            price = quote_prices(
                event, wagers, self.settings.market.price_increment
            ).for_direction(direction)

            accounts = self.accounts.load()
            account = find_account(accounts, actor.username)
            if account is None:
                raise AuthenticationError("Account no longer exists")
            if account.points < price:
                raise InsufficientPointsError(
                    f"Insufficient points: {account.points} < {price}",
                    balance=account.points,
                    price=price,
                )

            wager = Wager(
                id=generate_wager_id(),
                event_id=event_id,
                username=account.username,
                direction=direction,
                price=price,
            )
            debited = account.model_copy(update={"points": account.points - price})
            self.store.commit([
                self.accounts.build_write(replace_account(accounts, debited)),
                self.ledger.build_write(wagers + [wager]),
            ])

        logger.info(
            f"Placed bet: {account.username} {direction} on {event_id} @ {price} "
            f"(balance {debited.points})"
        )
        return PlacedBet(bet=wager, price=price, points=debited.points)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def change_password(
        self,
        actor: Optional[Account],
        current_credential: str,
        new_credential: str,
    ) -> None:
        """Rotate the actor's credential after verifying the current one."""
        actor = self._require_actor(actor)

        with self._lock:
            accounts = self.accounts.load()
            account = find_account(accounts, actor.username)
            if account is None or not self.hasher.verify(
                current_credential or "", account.password_hash, account.salt
            ):
                raise AuthenticationError("Current password incorrect")
            if not new_credential or len(new_credential) < self.settings.auth.min_password_length:
                raise ValidationError("New password too short")

            password_hash, salt = self.hasher.hash(new_credential)
            updated = account.model_copy(update={"password_hash": password_hash, "salt": salt})
            self.store.commit([self.accounts.build_write(replace_account(accounts, updated))])

        logger.info(f"Changed password for {actor.username}")

    def upsert_user(
        self,
        actor: Optional[Account],
        username: str,
        credential: str,
        is_admin: Optional[bool] = None,
    ) -> Account:
        """
        Create an account, or reset an existing one's credential. Admin only.

        Updates leave ``points`` alone and only change the admin flag when
        ``is_admin`` is given.
        """
        actor = self._require_admin(actor)
        username = (username or "").strip()
        if not username or not credential:
            raise ValidationError("Username and password required")

        password_hash, salt = self.hasher.hash(credential)

        with self._lock:
            accounts = self.accounts.load()
            existing = find_account(accounts, username)
            if existing is not None:
                update: dict = {"password_hash": password_hash, "salt": salt}
                if is_admin is not None:
                    update["is_admin"] = is_admin
                account = existing.model_copy(update=update)
                accounts = replace_account(accounts, account)
            else:
                account = Account(
                    username=username,
                    password_hash=password_hash,
                    salt=salt,
                    is_admin=bool(is_admin),
                    points=self.settings.market.default_points,
                )
                accounts = accounts + [account]
            self.store.commit([self.accounts.build_write(accounts)])

        action = "Updated" if existing is not None else "Created"
        logger.info(f"{action} account {username} by {actor.username}")
        return account
