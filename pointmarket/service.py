"""Session-keyed market service.

This is the request/response contract consumed by the HTTP layer: callers hold
an opaque session token, and every operation resolves it to an account before
handing off to the engine.
"""

import logging
from typing import Optional

from pointmarket.engine import MarketEngine
from pointmarket.exceptions import AuthenticationError
from pointmarket.pricing import Quote
from pointmarket.schemas import (
    LoginResult,
    MarketSnapshot,
    PlacedBet,
    Principal,
    Settlement,
)
from pointmarket.sessions import SessionRegistry
from pointmarket.storage import Account, Event

logger = logging.getLogger(__name__)


def to_principal(account: Account) -> Principal:
    return Principal(
        username=account.username,
        is_admin=account.is_admin,
        points=account.points,
    )


class MarketService:
    """Resolves session tokens to actors and delegates to the engine."""

    def __init__(self, engine: MarketEngine, sessions: SessionRegistry):
        self.engine = engine
        self.sessions = sessions

    def _actor(self, token: Optional[str]) -> Account:
        # Token lookup is in memory; no table is read for an unknown session.
        username = self.sessions.resolve(token)
        if username is None:
            raise AuthenticationError("Unauthorized")
        account = self.engine.get_account(username)
        if account is None:
            self.sessions.revoke(token)
            raise AuthenticationError("Unauthorized")
        return account

    # Sessions

    def login(self, username: str, credential: str) -> LoginResult:
        account = self.engine.authenticate(username, credential)
        token = self.sessions.create(account.username)
        logger.info(f"Login: {account.username}")
        return LoginResult(token=token, user=to_principal(account))

    def logout(self, token: Optional[str]) -> None:
        self.sessions.revoke(token)

    def get_principal(self, token: Optional[str]) -> Principal:
        return to_principal(self._actor(token))

    # Market

    def list_events(self, token: Optional[str]) -> MarketSnapshot:
        return self.engine.list_events(self._actor(token))

    def quote(self, token: Optional[str], event_id: str) -> Quote:
        return self.engine.quote(self._actor(token), event_id)

    def create_event(
        self, token: Optional[str], description: object, initial_price: object
    ) -> Event:
        return self.engine.create_event(self._actor(token), description, initial_price)

    def place_bet(self, token: Optional[str], event_id: str, direction: object) -> PlacedBet:
        return self.engine.place_bet(self._actor(token), event_id, direction)

    def close_event(self, token: Optional[str], event_id: str) -> Event:
        return self.engine.close_event(self._actor(token), event_id)

    def resolve_event(self, token: Optional[str], event_id: str, outcome: object) -> Settlement:
        return self.engine.resolve_event(self._actor(token), event_id, outcome)

    # Accounts

    def change_password(self, token: Optional[str], current: str, new: str) -> None:
        self.engine.change_password(self._actor(token), current, new)

    def upsert_user(
        self,
        token: Optional[str],
        username: str,
        credential: str,
        is_admin: Optional[bool] = None,
    ) -> Principal:
        account = self.engine.upsert_user(self._actor(token), username, credential, is_admin)
        return to_principal(account)
