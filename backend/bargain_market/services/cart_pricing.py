"""
Cart pricing resolver.

WHAT: Effective unit price for every cart line
WHY: A bargained price overrides the catalog price for that buyer only
HOW: One ledger snapshot per cart, catalog price as fallback; read-only
"""

from typing import List, Sequence

from sqlalchemy.orm import Session

from ..core.database import get_db
from ..models.order import CartLine, PricedLine
from .catalog import ProductCatalog, get_catalog
from .pricing_ledger import PricingLedger
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CartPricingResolver:
    """Price cart lines against the ledger and the catalog."""

    def __init__(self, catalog: ProductCatalog | None = None):
        self.catalog = catalog or get_catalog()

    def price_cart(
        self,
        buyer_id: str,
        lines: Sequence[CartLine],
        db: Session | None = None
    ) -> List[PricedLine]:
        """
        Resolve each line's unit price.

        Args:
            buyer_id: Buyer whose ledger entries apply
            lines: Cart lines in display order
            db: Session to read the ledger with; a new one is opened when omitted

        Returns:
            PricedLine per input line, same order
        """
        if db is None:
            with get_db() as session:
                return self.price_cart(buyer_id, lines, db=session)

        resolved = PricingLedger(db).snapshot(buyer_id, [line.product_id for line in lines])

        priced = []
        for line in lines:
            entry = resolved.get(line.product_id)
            if entry is not None:
                priced.append(PricedLine(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=entry.price,
                    price_source="bargain",
                    source_thread_id=entry.source_thread_id
                ))
            else:
                priced.append(PricedLine(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=self.catalog.get_catalog_price(line.product_id),
                    price_source="catalog"
                ))

        logger.debug(
            f"Priced {len(priced)} lines for {buyer_id} "
            f"({sum(1 for p in priced if p.price_source == 'bargain')} bargained)"
        )
        return priced
