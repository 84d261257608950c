"""Tests for trade settlement against an in-memory SQLite ledger."""

import threading
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy import exc as sa_exc

from factories import get_position, ledger_counts, make_asset, make_user, open_test_database
from rwa_platform.config import settings
from rwa_platform.errors import (
    ContentionError,
    InsufficientHoldingsError,
    InsufficientSupplyError,
    InvalidArgumentError,
    LedgerError,
    NotFoundError,
    StoreUnavailableError,
)
from rwa_platform.models.order import Order
from rwa_platform.models.trade import Trade
from rwa_platform.services import asset_service
from rwa_platform.services.trade_service import TradeRequest, quote_trade, settle_trade


def buy(user, asset, quantity, order_type="market", price=None):
    return TradeRequest(user.id, asset.id, "buy", quantity, order_type, price)


def sell(user, asset, quantity, order_type="market", price=None):
    return TradeRequest(user.id, asset.id, "sell", quantity, order_type, price)


class TestSettlementScenario:
    """Buy 10 at market 100, buy 10 at limit 110, sell 20 at 120."""

    def test_first_market_buy(self, db, alice, asset):
        result = settle_trade(db, buy(alice, asset, 10))

        assert result.execution_price == Decimal("100")
        assert result.gross_value == Decimal("1000")
        assert result.fee == Decimal("1")
        assert result.net_consideration == Decimal("1001")
        assert result.resulting_shares == Decimal("10")
        assert result.average_cost == Decimal("100.1")
        assert result.realized_pnl is None

        position = get_position(db, alice.id, asset.id)
        assert position.shares == Decimal("10")
        assert position.average_cost == Decimal("100.1")

    def test_second_limit_buy_reweights_average(self, db, alice, asset):
        settle_trade(db, buy(alice, asset, 10))
        result = settle_trade(db, buy(alice, asset, 10, "limit", 110))

        assert result.execution_price == Decimal("110")
        assert result.gross_value == Decimal("1100")
        assert result.fee == Decimal("1.1")
        assert result.net_consideration == Decimal("1101.1")
        assert result.resulting_shares == Decimal("20")
        assert result.average_cost == Decimal("105.105")

        position = get_position(db, alice.id, asset.id)
        assert position.average_cost == Decimal("105.105")

    def test_selling_everything_deletes_position(self, db, alice, asset):
        settle_trade(db, buy(alice, asset, 10))
        settle_trade(db, buy(alice, asset, 10, "limit", 110))
        result = settle_trade(db, sell(alice, asset, 20, "limit", 120))

        assert result.gross_value == Decimal("2400")
        assert result.fee == Decimal("2.4")
        assert result.net_consideration == Decimal("2397.6")
        assert result.realized_pnl == Decimal("295.5")
        assert result.resulting_shares == 0
        assert result.average_cost is None
        assert get_position(db, alice.id, asset.id) is None

        trade = db.query(Trade).filter(Trade.id == result.trade_id).one()
        assert trade.realized_pnl == Decimal("295.5")

    def test_sell_without_position(self, db, alice, asset):
        with pytest.raises(InsufficientHoldingsError) as exc:
            settle_trade(db, sell(alice, asset, 1))
        assert exc.value.available == 0
        assert exc.value.context["requested"] == Decimal("1")


class TestSettlementRecords:
    def test_order_and_trade_written_together(self, db, alice, asset):
        result = settle_trade(db, buy(alice, asset, 3))

        order = db.query(Order).filter(Order.id == result.order_id).one()
        trade = db.query(Trade).filter(Trade.id == result.trade_id).one()
        assert order.status == "filled"
        assert order.order_type == "market"
        assert order.price == Decimal("100")
        assert trade.order_id == order.id
        assert trade.fee == Decimal("0.3")
        assert trade.net_consideration == Decimal("300.3")

    def test_partial_sell_keeps_average_cost(self, db, alice, asset):
        settle_trade(db, buy(alice, asset, 10))
        result = settle_trade(db, sell(alice, asset, 4, "limit", 150))

        assert result.resulting_shares == Decimal("6")
        assert result.average_cost == Decimal("100.1")
        # 4 * (150 - 100.1) - 0.6
        assert result.realized_pnl == Decimal("199")

        position = get_position(db, alice.id, asset.id)
        assert position.shares == Decimal("6")
        assert position.average_cost == Decimal("100.1")

    def test_market_order_ignores_supplied_price(self, db, alice, asset):
        result = settle_trade(db, buy(alice, asset, 1, "market", 5))
        assert result.execution_price == Decimal("100")

    def test_fractional_shares(self, db, alice, asset):
        settle_trade(db, buy(alice, asset, "0.25"))
        result = settle_trade(db, sell(alice, asset, "0.25"))
        assert result.resulting_shares == 0
        assert get_position(db, alice.id, asset.id) is None

    def test_custom_fee_rate(self, db, alice, asset):
        result = settle_trade(db, buy(alice, asset, 10), fee_rate="0.01")
        assert result.fee == Decimal("10")
        assert result.average_cost == Decimal("101")

    def test_positions_are_per_user(self, db, alice, bob, asset):
        settle_trade(db, buy(alice, asset, 5))
        settle_trade(db, buy(bob, asset, 7, "limit", 90))
        assert get_position(db, alice.id, asset.id).shares == Decimal("5")
        assert get_position(db, bob.id, asset.id).shares == Decimal("7")


class TestSupply:
    def test_buy_beyond_cap_rejected(self, db, alice, bob):
        asset = make_asset(db, cap=100)
        settle_trade(db, buy(alice, asset, 60))

        with pytest.raises(InsufficientSupplyError) as exc:
            settle_trade(db, buy(bob, asset, 50))
        assert exc.value.available == Decimal("40")
        assert "40" in exc.value.message

    def test_exact_remaining_supply_allowed(self, db, alice, bob):
        asset = make_asset(db, cap=100)
        settle_trade(db, buy(alice, asset, 60))
        result = settle_trade(db, buy(bob, asset, 40))
        assert result.resulting_shares == Decimal("40")

    def test_sells_free_supply(self, db, alice, bob):
        asset = make_asset(db, cap=10)
        settle_trade(db, buy(alice, asset, 10))
        settle_trade(db, sell(alice, asset, 4))
        result = settle_trade(db, buy(bob, asset, 4))
        assert result.resulting_shares == Decimal("4")

    def test_default_cap_applies_without_explicit_cap(self, db, alice, asset):
        with pytest.raises(InsufficientSupplyError) as exc:
            settle_trade(db, buy(alice, asset, 21), default_issuable_shares=20)
        assert exc.value.available == Decimal("20")

    def test_configured_default_cap(self, db, alice, asset):
        with pytest.raises(InsufficientSupplyError) as exc:
            settle_trade(db, buy(alice, asset, 10001))
        assert exc.value.available == Decimal("10000")


class TestValidation:
    @pytest.mark.parametrize(
        "side, quantity, order_type, price",
        [
            ("hold", 1, "market", None),
            ("BUY", 1, "market", None),
            ("buy", 0, "market", None),
            ("buy", -5, "market", None),
            ("buy", "ten", "market", None),
            ("buy", float("nan"), "market", None),
            ("buy", 1, "stop", None),
            ("buy", 1, "limit", None),
            ("buy", 1, "limit", 0),
            ("buy", 1, "limit", -10),
            ("buy", "0.123456789", "market", None),
        ],
    )
    def test_invalid_arguments_never_reach_store(self, db, alice, asset, side, quantity, order_type, price):
        before = ledger_counts(db)
        with pytest.raises(InvalidArgumentError):
            settle_trade(db, TradeRequest(alice.id, asset.id, side, quantity, order_type, price))
        assert ledger_counts(db) == before

    def test_missing_ids(self, db):
        with pytest.raises(InvalidArgumentError):
            settle_trade(db, TradeRequest("", "asset", "buy", 1))
        with pytest.raises(InvalidArgumentError):
            settle_trade(db, TradeRequest("user", "  ", "buy", 1))

    def test_unknown_user(self, db, asset):
        with pytest.raises(NotFoundError) as exc:
            settle_trade(db, TradeRequest("did:privy:nobody", asset.id, "buy", 1))
        assert "User" in exc.value.message

    def test_unknown_asset(self, db, alice):
        with pytest.raises(NotFoundError) as exc:
            settle_trade(db, TradeRequest(alice.id, "missing-asset", "buy", 1))
        assert "Asset" in exc.value.message


class TestRejectedSettlementsLeaveNoTrace:
    def test_oversell_leaves_position_unchanged(self, db, alice, asset):
        settle_trade(db, buy(alice, asset, 5))
        before = ledger_counts(db)

        with pytest.raises(InsufficientHoldingsError) as exc:
            settle_trade(db, sell(alice, asset, 6))

        assert exc.value.available == Decimal("5")
        assert ledger_counts(db) == before
        position = get_position(db, alice.id, asset.id)
        assert position.shares == Decimal("5")
        assert position.average_cost == Decimal("100.1")

    def test_overbuy_creates_no_trade(self, db, alice):
        asset = make_asset(db, cap=5)
        with pytest.raises(InsufficientSupplyError):
            settle_trade(db, buy(alice, asset, 6))
        assert ledger_counts(db) == (0, 0, 0)

    def test_store_failure_during_write_rolls_back(self, db, alice, asset):
        settle_trade(db, buy(alice, asset, 5))
        before = ledger_counts(db)

        def fail_insert(mapper, connection, target):
            raise sa_exc.OperationalError("INSERT INTO trades", {}, Exception("database is locked"))

        event.listen(Trade, "before_insert", fail_insert)
        try:
            with pytest.raises(ContentionError) as exc:
                settle_trade(db, buy(alice, asset, 5))
        finally:
            event.remove(Trade, "before_insert", fail_insert)

        assert exc.value.retryable is True
        assert ledger_counts(db) == before
        assert get_position(db, alice.id, asset.id).shares == Decimal("5")

    def test_unreachable_store_is_not_contention(self, db, alice, asset):
        def fail_insert(mapper, connection, target):
            raise sa_exc.OperationalError("INSERT INTO orders", {}, Exception("unable to open database file"))

        event.listen(Order, "before_insert", fail_insert)
        try:
            with pytest.raises(StoreUnavailableError):
                settle_trade(db, buy(alice, asset, 1))
        finally:
            event.remove(Order, "before_insert", fail_insert)

        assert ledger_counts(db) == (0, 0, 0)


class TestQuote:
    def test_quote_prices_without_writing(self, db, alice, asset):
        quote = quote_trade(db, buy(alice, asset, 10))
        assert quote.net_consideration == Decimal("1001")
        assert quote.available_shares == Decimal("10000")
        assert ledger_counts(db) == (0, 0, 0)

    def test_quote_sell_reports_holdings(self, db, alice, asset):
        settle_trade(db, buy(alice, asset, 8))
        quote = quote_trade(db, sell(alice, asset, 3, "limit", 120))
        assert quote.available_shares == Decimal("8")
        assert quote.net_consideration == Decimal("359.64")

    def test_quote_runs_same_checks(self, db, alice, asset):
        with pytest.raises(InsufficientHoldingsError):
            quote_trade(db, sell(alice, asset, 1))


class TestLockContention:
    def test_writer_holding_lock_yields_contention(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "DB_LOCK_TIMEOUT_SECONDS", 0.1)
        database = open_test_database(f"sqlite:///{tmp_path / 'ledger.db'}")
        seed = database.session()
        alice = make_user(seed)
        asset = make_asset(seed)
        alice_id, asset_id = alice.id, asset.id
        seed.close()

        holder = database.session()
        contender = database.session()
        try:
            # An open write transaction on another connection holds the lock
            locked = asset_service.get_asset(holder, asset_id)
            locked.description = "repricing in progress"
            holder.flush()

            with pytest.raises(ContentionError):
                settle_trade(contender, TradeRequest(alice_id, asset_id, "buy", 1))
        finally:
            holder.rollback()
            holder.close()
            contender.close()

        check = database.session()
        assert ledger_counts(check) == (0, 0, 0)
        check.close()
        database.close()


class TestLargeAmounts:
    """18-significant-digit quantities must survive the store exactly."""

    LARGE = Decimal("999999999.99999999")

    def test_buy_then_sell_everything_leaves_no_dust(self, db, alice):
        asset = make_asset(db, cap=2_000_000_000)
        settle_trade(db, buy(alice, asset, self.LARGE))
        assert get_position(db, alice.id, asset.id).shares == self.LARGE

        result = settle_trade(db, sell(alice, asset, self.LARGE))
        assert result.resulting_shares == 0
        assert get_position(db, alice.id, asset.id) is None

    def test_supply_sum_is_exact(self, db, alice, bob):
        asset = make_asset(db, cap=2_000_000_000)
        settle_trade(db, buy(alice, asset, self.LARGE))
        settle_trade(db, buy(bob, asset, "1000000000.00000001"))

        with pytest.raises(InsufficientSupplyError) as exc:
            settle_trade(db, buy(alice, asset, "0.00000001"))
        assert exc.value.available == 0

    def test_trade_amounts_round_trip(self, db, alice):
        asset = make_asset(db, price="1234.56789012", cap=2_000_000_000)
        result = settle_trade(db, buy(alice, asset, "12345678.87654321"))

        db.expire_all()
        trade = db.query(Trade).filter(Trade.id == result.trade_id).one()
        assert trade.quantity == Decimal("12345678.87654321")
        assert trade.gross_value == result.gross_value
        assert trade.net_consideration == result.net_consideration


def _settle_concurrently(database, requests):
    """Run settlements on separate sessions released together. Returns outcome kinds."""
    barrier = threading.Barrier(len(requests))
    outcomes = [None] * len(requests)

    def worker(i, request):
        session = database.session()
        try:
            barrier.wait()
            settle_trade(session, request)
            outcomes[i] = "ok"
        except LedgerError as e:
            outcomes[i] = e.kind
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(i, r)) for i, r in enumerate(requests)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


class TestConcurrentSettlement:
    WORKERS = 5

    @pytest.fixture
    def file_database(self, tmp_path):
        database = open_test_database(f"sqlite:///{tmp_path / 'ledger.db'}")
        yield database
        database.close()

    def test_concurrent_full_sells_settle_at_most_once(self, file_database):
        seed = file_database.session()
        alice = make_user(seed)
        asset = make_asset(seed)
        settle_trade(seed, buy(alice, asset, 10))
        alice_id, asset_id = alice.id, asset.id
        seed.close()

        outcomes = _settle_concurrently(
            file_database, [TradeRequest(alice_id, asset_id, "sell", 10) for _ in range(self.WORKERS)]
        )

        assert None not in outcomes
        assert outcomes.count("ok") <= 1
        assert set(outcomes) <= {"ok", "insufficient_holdings", "contention"}

        check = file_database.session()
        orders, trades, positions = ledger_counts(check)
        assert (orders, trades) == (1 + outcomes.count("ok"), 1 + outcomes.count("ok"))
        position = get_position(check, alice_id, asset_id)
        if outcomes.count("ok"):
            assert position is None
        else:
            assert position.shares == Decimal("10")
        check.close()

    def test_concurrent_buys_never_overrun_cap(self, file_database):
        seed = file_database.session()
        asset = make_asset(seed, cap=10)
        user_ids = []
        for i in range(self.WORKERS):
            user_ids.append(make_user(seed, user_id=f"did:privy:buyer{i}", wallet=f"0xB{i}").id)
        asset_id = asset.id
        seed.close()

        outcomes = _settle_concurrently(
            file_database, [TradeRequest(user_id, asset_id, "buy", 6) for user_id in user_ids]
        )

        assert None not in outcomes
        assert outcomes.count("ok") <= 1
        assert set(outcomes) <= {"ok", "insufficient_supply", "contention"}

        check = file_database.session()
        held = asset_service.get_supply(check, asset_service.get_asset(check, asset_id))["shares_held"]
        assert held == Decimal(6) * outcomes.count("ok")
        assert held <= 10
        check.close()
