"""Account directory: user credentials, role and points balance."""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from pointmarket.exceptions import StorageError
from pointmarket.storage.tables import Record, TableStore, TableWrite

logger = logging.getLogger(__name__)

ACCOUNTS_TABLE = "users"
ACCOUNT_FIELDS = (
    "username",
    "password_hash",
    "salt",
    "is_admin",
    "points",
    "created_at",
)


class Account(BaseModel):
    """One row of the users table."""

    username: str
    password_hash: str
    salt: str
    is_admin: bool = False
    points: int = Field(ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> Record:
        return {
            "username": self.username,
            "password_hash": self.password_hash,
            "salt": self.salt,
            "is_admin": "true" if self.is_admin else "false",
            "points": str(self.points),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Record) -> "Account":
        try:
            return cls(
                username=record["username"],
                password_hash=record["password_hash"],
                salt=record["salt"],
                is_admin=record.get("is_admin", "") == "true",
                points=int(record["points"]),
                created_at=record["created_at"],
            )
        except (KeyError, ValueError, PydanticValidationError) as e:
            raise StorageError(
                f"Corrupt row in {ACCOUNTS_TABLE} table: {record.get('username', '?')}"
            ) from e


def find_account(accounts: list[Account], username: str) -> Account | None:
    """Return the account named ``username`` or None."""
    for account in accounts:
        if account.username == username:
            return account
    return None


def replace_account(accounts: list[Account], updated: Account) -> list[Account]:
    """Return a copy of ``accounts`` with the row for ``updated.username`` swapped in."""
    return [updated if a.username == updated.username else a for a in accounts]


class AccountDirectory:
    """Typed access to the users table."""

    def __init__(self, store: TableStore):
        self.store = store

    def load(self) -> list[Account]:
        return [Account.from_record(r) for r in self.store.load(ACCOUNTS_TABLE)]

    def get(self, username: str) -> Account | None:
        return find_account(self.load(), username)

    def build_write(self, accounts: list[Account]) -> TableWrite:
        return TableWrite(ACCOUNTS_TABLE, ACCOUNT_FIELDS, [a.to_record() for a in accounts])

    def initialize(self, bootstrap_admin: Account) -> bool:
        """Create the users table seeded with the bootstrap administrator."""
        created = self.store.initialize(
            ACCOUNTS_TABLE, ACCOUNT_FIELDS, [bootstrap_admin.to_record()]
        )
        if created:
            logger.info(f"Seeded bootstrap administrator: {bootstrap_admin.username}")
        return created
