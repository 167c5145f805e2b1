"""Tests for the market ledger engine."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from pointmarket.engine import MarketEngine
from pointmarket.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InsufficientPointsError,
    NotFoundError,
    ValidationError,
)
from tests.conftest import CountingStore, make_account, set_points, snapshot_tables


# =============================================================================
# Scenarios
# =============================================================================


def test_bet_and_resolve_scenario(engine, admin, bob, carol):
    dave = make_account(engine, admin, "dave")
    event = engine.create_event(admin, "Will it snow?", 40)
    assert (event.base_yes_price, event.base_no_price) == (40, 60)

    placed = engine.place_bet(bob, event.id, "yes")
    assert placed.price == 40
    assert placed.points == 960
    assert placed.bet.price == 40

    assert engine.place_bet(carol, event.id, "yes").price == 45
    assert engine.place_bet(dave, event.id, "no").price == 60

    settlement = engine.resolve_event(admin, event.id, "yes")

    assert settlement.winners == ["bob", "carol"]
    assert settlement.total_paid == 200
    assert engine.get_account("bob").points == 1060
    assert engine.get_account("carol").points == 1055
    assert engine.get_account("dave").points == 940

    resolved = engine.catalog.get(event.id)
    assert resolved.status == "resolved"
    assert resolved.outcome == "yes"


def test_second_bet_on_same_event_conflicts(engine, admin, bob):
    event = engine.create_event(admin, "Coin flip", 50)
    engine.place_bet(bob, event.id, "yes")
    before = snapshot_tables(engine.store.data_dir)

    with pytest.raises(ConflictError):
        engine.place_bet(bob, event.id, "no")

    assert snapshot_tables(engine.store.data_dir) == before


def test_repeated_identical_bets_record_one_wager(engine, admin, bob):
    event = engine.create_event(admin, "Coin flip", 50)

    for _ in range(5):
        try:
            engine.place_bet(bob, event.id, "yes")
        except ConflictError:
            pass

    assert len([w for w in engine.ledger.load() if w.username == "bob"]) == 1
    assert engine.get_account("bob").points == 950


def test_concurrent_bets_record_one_wager_per_user(engine, admin):
    users = [make_account(engine, admin, f"user{i}") for i in range(8)]
    event = engine.create_event(admin, "Crowded market", 40)
    errors = []

    def attempt(user):
        for _ in range(3):
            try:
                engine.place_bet(user, event.id, "yes")
            except ConflictError:
                pass
            except Exception as e:
                errors.append(e)

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(attempt, users * 2))

    wagers = engine.ledger.load()
    assert errors == []
    assert sorted(w.username for w in wagers) == sorted(u.username for u in users)
    assert sorted(w.price for w in wagers) == [40 + 5 * i for i in range(8)]
    for account in engine.accounts.load():
        assert account.points >= 0
    assert sum(1000 - engine.get_account(u.username).points for u in users) == sum(
        w.price for w in wagers
    )


def test_insufficient_points_leaves_tables_unchanged(engine, admin, bob):
    event = engine.create_event(admin, "Long shot", 40)
    set_points(engine, "bob", 39)
    before = snapshot_tables(engine.store.data_dir)

    with pytest.raises(InsufficientPointsError) as exc_info:
        engine.place_bet(bob, event.id, "yes")

    assert exc_info.value.price == 40
    assert exc_info.value.balance == 39
    assert isinstance(exc_info.value, ConflictError)
    assert snapshot_tables(engine.store.data_dir) == before


def test_exact_balance_can_bet_to_zero(engine, admin, bob):
    event = engine.create_event(admin, "All in", 40)
    set_points(engine, "bob", 40)

    assert engine.place_bet(bob, event.id, "yes").points == 0


def test_bet_uses_live_price_not_caller_snapshot(engine, admin, bob, carol):
    event = engine.create_event(admin, "Moving market", 40)
    stale_quote = engine.quote(bob, event.id)

    engine.place_bet(carol, event.id, "yes")
    placed = engine.place_bet(bob, event.id, "yes")

    assert stale_quote.yes == 40
    assert placed.price == 45


def test_non_admin_cannot_close(engine, admin, bob):
    event = engine.create_event(admin, "Admin only", 50)

    with pytest.raises(AuthorizationError):
        engine.close_event(bob, event.id)

    assert engine.catalog.get(event.id).status == "open"


def test_non_admin_cannot_resolve(engine, admin, bob):
    event = engine.create_event(admin, "Admin only", 50)

    with pytest.raises(AuthorizationError):
        engine.resolve_event(bob, event.id, "yes")


def test_second_resolve_conflicts_without_extra_credit(engine, admin, bob):
    event = engine.create_event(admin, "Once only", 50)
    engine.place_bet(bob, event.id, "yes")
    engine.resolve_event(admin, event.id, "yes")
    before = snapshot_tables(engine.store.data_dir)

    with pytest.raises(ConflictError):
        engine.resolve_event(admin, event.id, "yes")
    with pytest.raises(ConflictError):
        engine.resolve_event(admin, event.id, "no")

    assert engine.get_account("bob").points == 1050
    assert snapshot_tables(engine.store.data_dir) == before


# =============================================================================
# Lifecycle
# =============================================================================


def test_close_then_resolve(engine, admin, bob):
    event = engine.create_event(admin, "Two step", 50)
    engine.place_bet(bob, event.id, "no")

    assert engine.close_event(admin, event.id).status == "closed"

    with pytest.raises(ConflictError):
        engine.close_event(admin, event.id)

    settlement = engine.resolve_event(admin, event.id, "no")
    assert settlement.event.status == "resolved"
    assert settlement.winners == ["bob"]


def test_bets_rejected_once_closed_or_resolved(engine, admin, bob, carol):
    closed = engine.create_event(admin, "Closed", 50)
    engine.close_event(admin, closed.id)
    resolved = engine.create_event(admin, "Resolved", 50)
    engine.resolve_event(admin, resolved.id, "no")

    with pytest.raises(ConflictError):
        engine.place_bet(bob, closed.id, "yes")
    with pytest.raises(ConflictError):
        engine.place_bet(carol, resolved.id, "yes")


def test_resolved_event_cannot_be_closed(engine, admin):
    event = engine.create_event(admin, "Terminal", 50)
    engine.resolve_event(admin, event.id, "yes")

    with pytest.raises(ConflictError):
        engine.close_event(admin, event.id)
    assert engine.catalog.get(event.id).outcome == "yes"


def test_resolve_with_no_winners_pays_nothing(engine, admin, bob):
    event = engine.create_event(admin, "Nobody right", 50)
    engine.place_bet(bob, event.id, "yes")

    settlement = engine.resolve_event(admin, event.id, "no")

    assert settlement.winners == []
    assert settlement.total_paid == 0
    assert engine.get_account("bob").points == 950


def test_unknown_event(engine, admin, bob):
    with pytest.raises(NotFoundError):
        engine.place_bet(bob, "evt_missing", "yes")
    with pytest.raises(NotFoundError):
        engine.close_event(admin, "evt_missing")
    with pytest.raises(NotFoundError):
        engine.resolve_event(admin, "evt_missing", "yes")
    with pytest.raises(NotFoundError):
        engine.quote(bob, "evt_missing")


# =============================================================================
# Validation
# =============================================================================


@pytest.mark.parametrize("price", [0, 100, -5, 40.5, True, None, "abc", ""])
def test_create_event_rejects_bad_price(engine, admin, price):
    with pytest.raises(ValidationError):
        engine.create_event(admin, "Bad price", price)


@pytest.mark.parametrize("description", ["", "   ", None, 42])
def test_create_event_requires_description(engine, admin, description):
    with pytest.raises(ValidationError):
        engine.create_event(admin, description, 50)


@pytest.mark.parametrize(
    "price, expected",
    [(1, (1, 99)), (99, (99, 1)), (50, (50, 50)), ("40", (40, 60)), (70.0, (70, 30))],
)
def test_create_event_prices(engine, bob, price, expected):
    event = engine.create_event(bob, "  Any user may propose  ", price)

    assert (event.base_yes_price, event.base_no_price) == expected
    assert event.description == "Any user may propose"
    assert event.created_by == "bob"
    assert event.status == "open"
    assert event.outcome is None


def test_create_event_ids_are_unique(engine, admin):
    ids = {engine.create_event(admin, f"Event {i}", 50).id for i in range(10)}

    assert len(ids) == 10
    assert len(engine.catalog.load()) == 10


@pytest.mark.parametrize("direction", ["YES", "maybe", "", None])
def test_bad_direction(engine, admin, bob, direction):
    event = engine.create_event(admin, "Direction check", 50)

    with pytest.raises(ValidationError):
        engine.place_bet(bob, event.id, direction)


def test_bad_outcome(engine, admin):
    event = engine.create_event(admin, "Outcome check", 50)

    with pytest.raises(ValidationError):
        engine.resolve_event(admin, event.id, "maybe")
    assert engine.catalog.get(event.id).status == "open"


# =============================================================================
# Authentication
# =============================================================================


def test_missing_actor_short_circuits_before_reading(settings):
    store = CountingStore(settings.data_dir)
    engine = MarketEngine(store, settings)

    operations = [
        lambda: engine.create_event(None, "x", 50),
        lambda: engine.place_bet(None, "evt_1", "yes"),
        lambda: engine.close_event(None, "evt_1"),
        lambda: engine.resolve_event(None, "evt_1", "yes"),
        lambda: engine.change_password(None, "a", "bcde"),
        lambda: engine.upsert_user(None, "x", "y"),
        lambda: engine.list_events(None),
        lambda: engine.quote(None, "evt_1"),
    ]
    for operation in operations:
        with pytest.raises(AuthenticationError):
            operation()

    assert store.loads == []


def test_authenticate(engine, bob):
    assert engine.authenticate("bob", "secret").username == "bob"

    with pytest.raises(AuthenticationError):
        engine.authenticate("bob", "wrong")
    with pytest.raises(AuthenticationError):
        engine.authenticate("nobody", "secret")


# =============================================================================
# Accounts
# =============================================================================


def test_bootstrap_seeds_admin_once(engine, settings):
    admin = engine.get_account("admin")
    assert admin.is_admin
    assert admin.points == settings.market.default_points

    before = snapshot_tables(engine.store.data_dir)
    engine.bootstrap()
    assert snapshot_tables(engine.store.data_dir) == before
    assert set(before) == {"users.csv", "events.csv", "bets.csv"}


def test_change_password(engine, bob):
    old_salt = engine.get_account("bob").salt

    engine.change_password(bob, "secret", "better-secret")

    assert engine.get_account("bob").salt != old_salt
    assert engine.authenticate("bob", "better-secret")
    with pytest.raises(AuthenticationError):
        engine.authenticate("bob", "secret")


def test_change_password_rejections(engine, bob):
    before = snapshot_tables(engine.store.data_dir)

    with pytest.raises(AuthenticationError):
        engine.change_password(bob, "wrong", "long-enough")
    with pytest.raises(ValidationError):
        engine.change_password(bob, "secret", "abc")

    assert snapshot_tables(engine.store.data_dir) == before


def test_upsert_creates_with_default_points(engine, admin, settings):
    account = engine.upsert_user(admin, "erin", "pw", is_admin=True)

    assert account.points == settings.market.default_points
    assert account.is_admin
    assert engine.authenticate("erin", "pw")


def test_upsert_update_keeps_points_and_role(engine, admin, bob):
    set_points(engine, "bob", 321)

    updated = engine.upsert_user(admin, "bob", "new-pw")
    assert updated.points == 321
    assert not updated.is_admin
    assert engine.authenticate("bob", "new-pw")

    promoted = engine.upsert_user(admin, "bob", "new-pw", is_admin=True)
    assert promoted.is_admin
    assert engine.get_account("bob").points == 321
    assert len(engine.accounts.load()) == 2


def test_upsert_requires_admin_and_fields(engine, admin, bob):
    with pytest.raises(AuthorizationError):
        engine.upsert_user(bob, "mallory", "pw")
    with pytest.raises(ValidationError):
        engine.upsert_user(admin, "", "pw")
    with pytest.raises(ValidationError):
        engine.upsert_user(admin, "mallory", "")


# =============================================================================
# Listings
# =============================================================================


def test_list_events_includes_prices_bettors_and_own_wagers(engine, admin, bob, carol):
    first = engine.create_event(admin, "First", 40)
    second = engine.create_event(admin, "Second", 70)
    engine.place_bet(bob, first.id, "yes")
    engine.place_bet(carol, first.id, "no")
    engine.place_bet(bob, second.id, "no")

    snapshot = engine.list_events(bob)
    views = {view.id: view for view in snapshot.events}

    assert views[first.id].prices.yes == 45
    assert views[first.id].prices.no == 65
    assert views[first.id].bets.yes == ["bob"]
    assert views[first.id].bets.no == ["carol"]
    assert views[second.id].prices.no == 35
    assert {w.event_id for w in snapshot.user_wagers} == {first.id, second.id}
    assert all(w.username == "bob" for w in snapshot.user_wagers)
