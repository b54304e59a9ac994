"""
Product catalog collaborator.

WHAT: Catalog price, stock and owner lookups for products
WHY: Negotiations and checkout read the catalog but never change it
HOW: Protocol plus a SQLAlchemy implementation over the products table,
     cached as a process-wide singleton like other collaborators
"""

from typing import Protocol

from ..core.database import get_db
from ..core.models import Product
from ..utils.exceptions import NotFoundException
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ProductCatalog(Protocol):
    """Read-only view of the product catalog."""

    def get_catalog_price(self, product_id: str) -> float:
        """Current listed price. Raises NotFoundException for unknown products."""
        ...

    def get_stock(self, product_id: str) -> int:
        """Units currently available."""
        ...

    def get_owner(self, product_id: str) -> str:
        """User id of the seller who owns the product."""
        ...


class SqlProductCatalog:
    """Catalog backed by the products table."""

    def _load(self, product_id: str) -> Product:
        with get_db() as db:
            product = db.get(Product, product_id)
            if product is None:
                raise NotFoundException("Product", product_id)
            return product

    def get_catalog_price(self, product_id: str) -> float:
        return self._load(product_id).price

    def get_stock(self, product_id: str) -> int:
        return self._load(product_id).stock

    def get_owner(self, product_id: str) -> str:
        return self._load(product_id).owner_id

    def add_product(self, name: str, price: float, stock: int, owner_id: str, product_id: str | None = None) -> str:
        """Register a product and return its id."""
        with get_db() as db:
            product = Product(name=name, price=price, stock=stock, owner_id=owner_id)
            if product_id:
                product.product_id = product_id
            db.add(product)
            db.flush()
            logger.info(f"Added product {product.product_id} ({name}) owned by {owner_id}")
            return product.product_id


# Singleton instance
_catalog_instance: ProductCatalog | None = None


def get_catalog() -> ProductCatalog:
    """Get the configured catalog singleton."""
    global _catalog_instance
    if _catalog_instance is None:
        _catalog_instance = SqlProductCatalog()
    return _catalog_instance


def set_catalog(catalog: ProductCatalog) -> None:
    """Replace the catalog collaborator (another service, or a fake in tests)."""
    global _catalog_instance
    _catalog_instance = catalog


def reset_catalog() -> None:
    """Reset the catalog singleton (useful for testing)."""
    global _catalog_instance
    _catalog_instance = None
