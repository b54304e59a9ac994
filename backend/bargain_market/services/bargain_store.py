"""
Bargain record store.

WHAT: Persistence of bargain threads and their message logs
WHY: Keep the single-open-thread invariant and the audit trail in one place
HOW: Session-bound repository over bargain_threads / bargain_messages; the
     optimistic version column turns lost updates into ConcurrentModification
"""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from ..core.models import BargainThread, BargainMessage, BargainStatus, utcnow
from ..utils.exceptions import (
    DuplicateActiveThreadException,
    InvalidOfferException,
    NotFoundException,
    ConcurrentModificationException,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


def validate_offer_amount(amount: float, catalog_price: float) -> None:
    """Offers and counter-offers must lie strictly between 0 and the catalog price."""
    if amount is None or amount <= 0 or amount >= catalog_price:
        raise InvalidOfferException(amount, catalog_price)


class BargainStore:
    """CRUD and participant queries for bargain threads."""

    def __init__(self, db: Session):
        self.db = db

    def create_thread(
        self,
        buyer_id: str,
        product_id: str,
        seller_id: str,
        catalog_price: float,
        initial_offer: float
    ) -> BargainThread:
        """
        Open a new pending thread for the pair.

        Raises:
            InvalidOfferException: initial_offer outside (0, catalog_price)
            DuplicateActiveThreadException: an open thread already exists
        """
        validate_offer_amount(initial_offer, catalog_price)

        existing = self.find_active_thread(buyer_id, product_id)
        if existing is not None:
            raise DuplicateActiveThreadException(buyer_id, product_id, existing.thread_id)

        now = utcnow()
        thread = BargainThread(
            buyer_id=buyer_id,
            product_id=product_id,
            seller_id=seller_id,
            catalog_price=catalog_price,
            current_offer=initial_offer,
            counter_offer=None,
            status=BargainStatus.PENDING,
            open_key=BargainThread.make_open_key(buyer_id, product_id),
            created_at=now,
            updated_at=now
        )
        self.db.add(thread)
        try:
            self.db.flush()
        except IntegrityError as e:
            # Another writer opened a thread between our check and our insert
            logger.warning(f"Open thread race for {buyer_id}/{product_id}: {e.orig}")
            raise DuplicateActiveThreadException(buyer_id, product_id) from e

        logger.info(
            f"Created bargain {thread.thread_id}: buyer={buyer_id} product={product_id} "
            f"offer={initial_offer} catalog={catalog_price}"
        )
        return thread

    def find_active_thread(self, buyer_id: str, product_id: str) -> Optional[BargainThread]:
        """The open (pending or countered) thread of the pair, if any."""
        return (
            self.db.query(BargainThread)
            .filter_by(open_key=BargainThread.make_open_key(buyer_id, product_id))
            .first()
        )

    def get_thread(self, thread_id: str) -> BargainThread:
        thread = self.db.get(BargainThread, thread_id)
        if thread is None:
            raise NotFoundException("Bargain", thread_id)
        return thread

    def _listing(self):
        return (
            self.db.query(BargainThread)
            .options(selectinload(BargainThread.messages))
            .order_by(BargainThread.created_at.desc())
        )

    def list_threads_for_user(self, buyer_id: str) -> List[BargainThread]:
        return self._listing().filter(BargainThread.buyer_id == buyer_id).all()

    def list_threads_for_seller(self, seller_id: str) -> List[BargainThread]:
        return self._listing().filter(BargainThread.seller_id == seller_id).all()

    def list_all_threads(self) -> List[BargainThread]:
        return self._listing().all()

    def append_message(self, thread_id: str, sender_id: str, text: str) -> BargainMessage:
        """
        Append a message to the thread's log, whatever its status.

        Raises:
            NotFoundException: unknown thread
            ValidationException: blank text
        """
        if not text or not text.strip():
            raise ValidationException("Message text must not be empty")

        thread = self.get_thread(thread_id)
        message = BargainMessage(
            sequence=len(thread.messages),
            sender_id=sender_id,
            text=text.strip(),
            sent_at=utcnow()
        )
        thread.messages.append(message)
        self.save(thread)
        return message

    def save(self, thread: BargainThread) -> BargainThread:
        """
        Flush the thread's state, refreshing updated_at.

        Raises:
            ConcurrentModificationException: the row changed since it was loaded
        """
        # A failed flush expires the instance, so nothing on it is readable afterwards
        thread_id = thread.thread_id
        key = BargainThread.make_open_key(thread.buyer_id, thread.product_id)
        thread.updated_at = utcnow()
        try:
            self.db.flush()
        except StaleDataError as e:
            logger.warning(f"Stale write on bargain {thread_id}: {e}")
            raise ConcurrentModificationException(key) from e
        return thread
