"""Storage layer for Pointmarket - CSV tables for accounts, events and wagers.

This package provides:
- A generic table store (load/save/commit of CSV record collections)
- The account directory (users table)
- The market catalog (events table and lifecycle rules)
- The wager ledger (bets table)

Table files are replaced whole via temp file + rename so a crash mid-write
never leaves a half-written table behind.
"""

from .tables import (
    Record,
    TableStore,
    TableWrite,
    decode_table,
    encode_row,
    encode_table,
    encode_value,
)

from .accounts import (
    ACCOUNT_FIELDS,
    ACCOUNTS_TABLE,
    Account,
    AccountDirectory,
    find_account,
    replace_account,
)

from .catalog import (
    EVENT_FIELDS,
    EVENTS_TABLE,
    Event,
    EventCatalog,
    EventStatus,
    Outcome,
    can_transition,
    clamp_price,
    find_event,
    generate_event_id,
)

from .wagers import (
    DIRECTIONS,
    WAGER_FIELDS,
    WAGERS_TABLE,
    Direction,
    Wager,
    WagerLedger,
    generate_wager_id,
    has_wager,
    wagers_for_event,
)

__all__ = [
    # Tables
    "Record",
    "TableStore",
    "TableWrite",
    "decode_table",
    "encode_row",
    "encode_table",
    "encode_value",
    # Accounts
    "ACCOUNT_FIELDS",
    "ACCOUNTS_TABLE",
    "Account",
    "AccountDirectory",
    "find_account",
    "replace_account",
    # Events
    "EVENT_FIELDS",
    "EVENTS_TABLE",
    "Event",
    "EventCatalog",
    "EventStatus",
    "Outcome",
    "can_transition",
    "clamp_price",
    "find_event",
    "generate_event_id",
    # Wagers
    "DIRECTIONS",
    "WAGER_FIELDS",
    "WAGERS_TABLE",
    "Direction",
    "Wager",
    "WagerLedger",
    "generate_wager_id",
    "has_wager",
    "wagers_for_event",
]
