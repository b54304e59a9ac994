"""
Pricing ledger.

WHAT: Authoritative bargained price per (buyer, product)
WHY: Cart pricing and checkout must agree on which price overrides the catalog
HOW: Session-bound repository over the resolved_prices table; callers own the
     transaction so ledger writes commit together with thread transitions
"""

from typing import Dict, Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.models import ResolvedPrice, utcnow
from ..models.bargain import ResolvedPriceEntry
from ..utils.exceptions import ConcurrentModificationException, InvalidPriceException
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PricingLedger:
    """Lookup and overwrite resolved prices inside the caller's session."""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, buyer_id: str, product_id: str) -> Optional[ResolvedPrice]:
        return (
            self.db.query(ResolvedPrice)
            .filter_by(buyer_id=buyer_id, product_id=product_id)
            .first()
        )

    def resolved_price(self, buyer_id: str, product_id: str) -> Optional[float]:
        """Resolved price for the pair, or None when no bargain was accepted."""
        row = self._row(buyer_id, product_id)
        return row.price if row else None

    def get_entry(self, buyer_id: str, product_id: str) -> Optional[ResolvedPriceEntry]:
        row = self._row(buyer_id, product_id)
        return ResolvedPriceEntry.model_validate(row) if row else None

    def set_resolved_price(
        self,
        buyer_id: str,
        product_id: str,
        price: float,
        thread_id: str
    ) -> ResolvedPriceEntry:
        """
        Record ``price`` for the pair, replacing any earlier entry.

        Raises:
            InvalidPriceException: price is not strictly positive
            ConcurrentModificationException: another writer created the entry first
        """
        if price is None or price <= 0:
            raise InvalidPriceException(price)

        row = self._row(buyer_id, product_id)
        if row is None:
            row = ResolvedPrice(
                buyer_id=buyer_id,
                product_id=product_id,
                price=price,
                source_thread_id=thread_id,
                resolved_at=utcnow()
            )
            self.db.add(row)
        else:
            logger.info(
                f"Overwriting resolved price for {buyer_id}/{product_id}: "
                f"{row.price} (thread {row.source_thread_id}) -> {price} (thread {thread_id})"
            )
            row.price = price
            row.source_thread_id = thread_id
            row.resolved_at = utcnow()

        try:
            self.db.flush()
        except IntegrityError as e:
            raise ConcurrentModificationException(f"{buyer_id}:{product_id}") from e
        return ResolvedPriceEntry.model_validate(row)

    def clear_resolved_price(self, buyer_id: str, product_id: str) -> bool:
        """Remove the entry for the pair. Returns False when there was none."""
        row = self._row(buyer_id, product_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        logger.info(f"Cleared resolved price for {buyer_id}/{product_id}")
        return True

    def snapshot(self, buyer_id: str, product_ids: Iterable[str]) -> Dict[str, ResolvedPriceEntry]:
        """
        All entries of a buyer for the given products, read with one query.

        Returns:
            Dict of product_id -> ResolvedPriceEntry (products without an entry are absent)
        """
        wanted = list(dict.fromkeys(product_ids))
        if not wanted:
            return {}

        rows = (
            self.db.query(ResolvedPrice)
            .filter(ResolvedPrice.buyer_id == buyer_id, ResolvedPrice.product_id.in_(wanted))
            .all()
        )
        return {row.product_id: ResolvedPriceEntry.model_validate(row) for row in rows}
