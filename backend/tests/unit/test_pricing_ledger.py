"""
Unit tests for the pricing ledger.

WHAT: Test resolved price writes, overwrites, clears and snapshots
WHY: The ledger is the only source of bargained prices at checkout
HOW: Session-bound ledger against the test database
"""

import pytest

from bargain_market.core.database import get_db
from bargain_market.services.pricing_ledger import PricingLedger
from bargain_market.utils.exceptions import InvalidPriceException


@pytest.mark.unit
class TestPricingLedger:
    """Test PricingLedger reads and writes."""

    def test_missing_entry_resolves_to_none(self):
        with get_db() as db:
            assert PricingLedger(db).resolved_price("buyer_1", "laptop") is None

    def test_set_then_read(self):
        with get_db() as db:
            entry = PricingLedger(db).set_resolved_price("buyer_1", "laptop", 70.0, "thread-1")

        assert entry.price == 70.0
        assert entry.source_thread_id == "thread-1"

        with get_db() as db:
            assert PricingLedger(db).resolved_price("buyer_1", "laptop") == 70.0

    def test_later_write_overwrites(self):
        with get_db() as db:
            ledger = PricingLedger(db)
            ledger.set_resolved_price("buyer_1", "laptop", 70.0, "thread-1")
            ledger.set_resolved_price("buyer_1", "laptop", 65.0, "thread-2")

        with get_db() as db:
            entry = PricingLedger(db).get_entry("buyer_1", "laptop")
        assert entry.price == 65.0
        assert entry.source_thread_id == "thread-2"

    def test_entries_are_per_buyer(self):
        with get_db() as db:
            PricingLedger(db).set_resolved_price("buyer_1", "laptop", 70.0, "thread-1")

        with get_db() as db:
            assert PricingLedger(db).resolved_price("buyer_2", "laptop") is None

    @pytest.mark.parametrize("price", [0, -5.0, None])
    def test_non_positive_price_rejected(self, price):
        with get_db() as db:
            with pytest.raises(InvalidPriceException):
                PricingLedger(db).set_resolved_price("buyer_1", "laptop", price, "thread-1")

    def test_clear(self):
        with get_db() as db:
            ledger = PricingLedger(db)
            ledger.set_resolved_price("buyer_1", "laptop", 70.0, "thread-1")
            assert ledger.clear_resolved_price("buyer_1", "laptop") is True
            assert ledger.clear_resolved_price("buyer_1", "laptop") is False
            assert ledger.resolved_price("buyer_1", "laptop") is None

    def test_snapshot_only_returns_requested_products(self):
        with get_db() as db:
            ledger = PricingLedger(db)
            ledger.set_resolved_price("buyer_1", "laptop", 70.0, "thread-1")
            ledger.set_resolved_price("buyer_1", "phone", 40.0, "thread-2")
            ledger.set_resolved_price("buyer_2", "tablet", 30.0, "thread-3")

            snapshot = ledger.snapshot("buyer_1", ["laptop", "tablet", "laptop"])

        assert set(snapshot) == {"laptop"}
        assert snapshot["laptop"].price == 70.0

    def test_snapshot_of_nothing(self):
        with get_db() as db:
            assert PricingLedger(db).snapshot("buyer_1", []) == {}

    def test_rollback_discards_write(self):
        with pytest.raises(RuntimeError):
            with get_db() as db:
                PricingLedger(db).set_resolved_price("buyer_1", "laptop", 70.0, "thread-1")
                raise RuntimeError("abort")

        with get_db() as db:
            assert PricingLedger(db).resolved_price("buyer_1", "laptop") is None
