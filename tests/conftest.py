"""
Shared pytest fixtures for Pointmarket tests.

Provides:
- Settings pointed at a temporary data directory (cheap hashing for speed)
- A bootstrapped engine with the seeded administrator
- Helpers for creating accounts and adjusting balances
"""

from pathlib import Path

import pytest

from pointmarket.config import AuthConfig, Settings
from pointmarket.engine import MarketEngine
from pointmarket.service import MarketService
from pointmarket.sessions import SessionRegistry
from pointmarket.storage import Account, TableStore, replace_account

ADMIN = "admin"
ADMIN_PASSWORD = "admin"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def make_account(engine: MarketEngine, admin: Account, username: str, password: str = "secret") -> Account:
    """Create an account through the admin upsert path."""
    return engine.upsert_user(admin, username, password)


def set_points(engine: MarketEngine, username: str, points: int) -> Account:
    """Overwrite a balance directly in the users table."""
    accounts = engine.accounts.load()
    account = next(a for a in accounts if a.username == username)
    updated = account.model_copy(update={"points": points})
    engine.store.commit([engine.accounts.build_write(replace_account(accounts, updated))])
    return updated


def snapshot_tables(data_dir: Path) -> dict[str, bytes]:
    """Raw bytes of every table file, for byte-for-byte comparisons."""
    return {p.name: p.read_bytes() for p in sorted(data_dir.glob("*.csv"))}


class CountingStore(TableStore):
    """Table store that records every load."""

    def __init__(self, data_dir: Path):
        super().__init__(data_dir)
        self.loads: list[str] = []

    def load(self, table_id: str):
        self.loads.append(table_id)
        return super().load(table_id)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        auth=AuthConfig(hash_iterations=1_000),
    )


@pytest.fixture
def store(settings: Settings) -> TableStore:
    return TableStore(settings.data_dir)


@pytest.fixture
def engine(store: TableStore, settings: Settings) -> MarketEngine:
    engine = MarketEngine(store, settings)
    engine.bootstrap()
    return engine


@pytest.fixture
def admin(engine: MarketEngine) -> Account:
    return engine.get_account(ADMIN)


@pytest.fixture
def bob(engine: MarketEngine, admin: Account) -> Account:
    return make_account(engine, admin, "bob")


@pytest.fixture
def carol(engine: MarketEngine, admin: Account) -> Account:
    return make_account(engine, admin, "carol")


@pytest.fixture
def service(engine: MarketEngine) -> MarketService:
    return MarketService(engine, SessionRegistry())
