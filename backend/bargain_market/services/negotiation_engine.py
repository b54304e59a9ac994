"""
Negotiation engine.

WHAT: State machine for bargain threads (offer, counter, revise, accept, reject)
WHY: Only the engine may move a thread between statuses or write the ledger
HOW: Each transition runs under the (buyer, product) lock inside one database
     transaction: reload thread, check actor, check status, validate amount,
     mutate thread (and ledger on accept), save. Notifications go out after
     the commit and their failures are only logged.

State table:

    (none)              --buyer offer-->    pending
    pending/countered   --seller counter--> countered
    pending/countered   --buyer revise-->   pending
    pending/countered   --accept-->         accepted   (ledger written)
    pending/countered   --reject-->         rejected
    accepted/rejected   --anything-->       ThreadClosed
"""

from typing import Callable, List, Optional

from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..core.database import get_db
from ..core.models import BargainThread, BargainStatus, NotificationType
from ..models.bargain import Actor, ActorRole, BargainThreadView, NotificationEvent, ResolvedPriceEntry
from .bargain_store import BargainStore, validate_offer_amount
from .pricing_ledger import PricingLedger
from .catalog import ProductCatalog, get_catalog
from .notifications import NotificationDispatcher, get_dispatcher
from ..utils.locks import KeyedLockRegistry
from ..utils.exceptions import (
    ConcurrentModificationException,
    NothingToAcceptException,
    NotFoundException,
    ThreadClosedException,
    UnauthorizedException,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Shared by every engine in the process so all of them serialize on the same keys
bargain_locks = KeyedLockRegistry(timeout=settings.BARGAIN_LOCK_TIMEOUT_SECONDS)

Transition = Callable[[BargainStore, PricingLedger, BargainThread], Optional[NotificationEvent]]


class NegotiationEngine:
    """Apply bargain transitions for explicit actors."""

    def __init__(
        self,
        catalog: ProductCatalog | None = None,
        dispatcher: NotificationDispatcher | None = None,
        locks: KeyedLockRegistry | None = None
    ):
        self.catalog = catalog or get_catalog()
        self.dispatcher = dispatcher or get_dispatcher()
        self.locks = locks or bargain_locks

    # ---------- helpers ----------

    @staticmethod
    def _require_role(actor: Actor, role: ActorRole, action: str) -> None:
        if actor.role != role:
            raise UnauthorizedException(actor.user_id, action, f"requires role {role.value}")

    @staticmethod
    def _participant_role(actor: Actor, thread: BargainThread, action: str) -> ActorRole:
        """Side of the thread the actor is on; admins and strangers are refused."""
        if actor.role == ActorRole.BUYER and actor.user_id == thread.buyer_id:
            return ActorRole.BUYER
        if actor.role == ActorRole.SELLER and actor.user_id == thread.seller_id:
            return ActorRole.SELLER
        raise UnauthorizedException(actor.user_id, action, "not a participant of this bargain")

    @staticmethod
    def _ensure_open(thread: BargainThread) -> None:
        if thread.status.is_terminal:
            raise ThreadClosedException(thread.thread_id, thread.status.value)

    @staticmethod
    def _close(thread: BargainThread, status: BargainStatus) -> None:
        thread.status = status
        thread.counter_offer = None
        thread.open_key = None

    @staticmethod
    def _event(
        thread: BargainThread,
        event_type: NotificationType,
        sender_id: str,
        amount: float | None = None
    ) -> NotificationEvent:
        recipient = thread.seller_id if sender_id == thread.buyer_id else thread.buyer_id
        return NotificationEvent(
            thread_id=thread.thread_id,
            type=event_type,
            recipient_id=recipient,
            sender_id=sender_id,
            product_id=thread.product_id,
            amount=amount
        )

    def _emit(self, event: Optional[NotificationEvent]) -> None:
        if event is None:
            return
        try:
            self.dispatcher.notify(event)
        except Exception as e:
            logger.error(
                f"Notification {event.type.value} for thread {event.thread_id} "
                f"to {event.recipient_id} failed: {e}"
            )

    def _thread_key(self, thread_id: str) -> str:
        with get_db() as db:
            thread = db.get(BargainThread, thread_id)
            if thread is None:
                raise NotFoundException("Bargain", thread_id)
            return BargainThread.make_open_key(thread.buyer_id, thread.product_id)

    def _transition(self, thread_id: str, action: str, apply: Transition) -> BargainThreadView:
        key = self._thread_key(thread_id)
        with self.locks.hold(key):
            try:
                with get_db() as db:
                    store = BargainStore(db)
                    ledger = PricingLedger(db)
                    thread = store.get_thread(thread_id)
                    event = apply(store, ledger, thread)
                    store.save(thread)
                    view = BargainThreadView.model_validate(thread)
            except StaleDataError as e:
                raise ConcurrentModificationException(key) from e

        logger.info(f"Bargain {thread_id}: {action} -> {view.status.value} (v{view.version})")
        self._emit(event)
        return view

    # ---------- transitions ----------

    def submit_offer(
        self,
        actor: Actor,
        product_id: str,
        amount: float,
        message: str | None = None
    ) -> BargainThreadView:
        """
        Open a negotiation with an initial offer.

        Raises:
            UnauthorizedException: actor is not a buyer, or owns the product
            NotFoundException: unknown product
            InvalidOfferException: amount outside (0, catalog_price)
            DuplicateActiveThreadException: an open thread already exists
        """
        self._require_role(actor, ActorRole.BUYER, "submit an offer")
        catalog_price = self.catalog.get_catalog_price(product_id)
        seller_id = self.catalog.get_owner(product_id)
        if seller_id == actor.user_id:
            raise UnauthorizedException(actor.user_id, "submit an offer", "cannot bargain on own product")

        key = BargainThread.make_open_key(actor.user_id, product_id)
        with self.locks.hold(key):
            with get_db() as db:
                store = BargainStore(db)
                thread = store.create_thread(
                    buyer_id=actor.user_id,
                    product_id=product_id,
                    seller_id=seller_id,
                    catalog_price=catalog_price,
                    initial_offer=amount
                )
                if message:
                    store.append_message(thread.thread_id, actor.user_id, message)
                view = BargainThreadView.model_validate(thread)

        self._emit(NotificationEvent(
            thread_id=view.thread_id,
            type=NotificationType.OFFER,
            recipient_id=seller_id,
            sender_id=actor.user_id,
            product_id=product_id,
            amount=amount
        ))
        return view

    def revise_offer(
        self,
        actor: Actor,
        thread_id: str,
        amount: float,
        message: str | None = None
    ) -> BargainThreadView:
        """Buyer replaces the current offer; any counter-offer is dropped."""

        def apply(store: BargainStore, ledger: PricingLedger, thread: BargainThread):
            if self._participant_role(actor, thread, "revise an offer") != ActorRole.BUYER:
                raise UnauthorizedException(actor.user_id, "revise an offer", "only the buyer may offer")
            self._ensure_open(thread)
            validate_offer_amount(amount, thread.catalog_price)

            thread.current_offer = amount
            thread.counter_offer = None
            thread.status = BargainStatus.PENDING
            if message:
                store.append_message(thread.thread_id, actor.user_id, message)
            return self._event(thread, NotificationType.OFFER, actor.user_id, amount)

        return self._transition(thread_id, "revise_offer", apply)

    def counter_offer(
        self,
        actor: Actor,
        thread_id: str,
        amount: float,
        message: str | None = None
    ) -> BargainThreadView:
        """Product owner proposes a counter price."""

        def apply(store: BargainStore, ledger: PricingLedger, thread: BargainThread):
            if self._participant_role(actor, thread, "counter an offer") != ActorRole.SELLER:
                raise UnauthorizedException(actor.user_id, "counter an offer", "only the product owner may counter")
            self._ensure_open(thread)
            validate_offer_amount(amount, thread.catalog_price)

            thread.counter_offer = amount
            thread.status = BargainStatus.COUNTERED
            if message:
                store.append_message(thread.thread_id, actor.user_id, message)
            return self._event(thread, NotificationType.COUNTER, actor.user_id, amount)

        return self._transition(thread_id, "counter_offer", apply)

    def accept(self, actor: Actor, thread_id: str) -> BargainThreadView:
        """
        Accept the other party's most recent number.

        The buyer accepts the counter-offer, the seller accepts the buyer's
        current offer. The ledger entry is written in the same transaction as
        the status change.

        Raises:
            NothingToAcceptException: buyer accepting with no counter-offer
            ThreadClosedException: thread already accepted or rejected
        """

        def apply(store: BargainStore, ledger: PricingLedger, thread: BargainThread):
            role = self._participant_role(actor, thread, "accept a bargain")
            self._ensure_open(thread)

            value = thread.counter_offer if role == ActorRole.BUYER else thread.current_offer
            if value is None:
                raise NothingToAcceptException(thread.thread_id)

            ledger.set_resolved_price(thread.buyer_id, thread.product_id, value, thread.thread_id)
            thread.accepted_price = value
            self._close(thread, BargainStatus.ACCEPTED)
            return self._event(thread, NotificationType.ACCEPTED, actor.user_id, value)

        return self._transition(thread_id, "accept", apply)

    def reject(self, actor: Actor, thread_id: str, message: str | None = None) -> BargainThreadView:
        """Either participant declines; the thread closes without a ledger write."""

        def apply(store: BargainStore, ledger: PricingLedger, thread: BargainThread):
            self._participant_role(actor, thread, "reject a bargain")
            self._ensure_open(thread)

            self._close(thread, BargainStatus.REJECTED)
            if message:
                store.append_message(thread.thread_id, actor.user_id, message)
            return self._event(thread, NotificationType.REJECTED, actor.user_id)

        return self._transition(thread_id, "reject", apply)

    def revoke_acceptance(self, actor: Actor, thread_id: str) -> BargainThreadView:
        """
        Product owner withdraws the price granted by an accepted thread.

        The thread keeps its accepted status as history; only the ledger entry
        it produced is removed. A ledger entry already superseded by a later
        thread is left alone.
        """

        def apply(store: BargainStore, ledger: PricingLedger, thread: BargainThread):
            if self._participant_role(actor, thread, "revoke a bargain") != ActorRole.SELLER:
                raise UnauthorizedException(actor.user_id, "revoke a bargain", "only the product owner may revoke")
            if thread.status != BargainStatus.ACCEPTED:
                raise ValidationException(f"Only accepted bargains can be revoked, status is {thread.status.value}")

            entry = ledger.get_entry(thread.buyer_id, thread.product_id)
            if entry is not None and entry.source_thread_id == thread.thread_id:
                ledger.clear_resolved_price(thread.buyer_id, thread.product_id)
                store.append_message(thread.thread_id, actor.user_id, "Accepted price revoked by seller")
            else:
                logger.info(f"Bargain {thread.thread_id} no longer owns the ledger entry, nothing revoked")
            return None

        return self._transition(thread_id, "revoke_acceptance", apply)

    # ---------- messages and queries ----------

    def append_message(self, actor: Actor, thread_id: str, text: str) -> BargainThreadView:
        """Add a message to the thread's log; allowed on closed threads too."""

        def apply(store: BargainStore, ledger: PricingLedger, thread: BargainThread):
            if not actor.is_admin:
                self._participant_role(actor, thread, "message on a bargain")
            store.append_message(thread.thread_id, actor.user_id, text)
            return None

        return self._transition(thread_id, "append_message", apply)

    def get_thread(self, actor: Actor, thread_id: str) -> BargainThreadView:
        with get_db() as db:
            thread = BargainStore(db).get_thread(thread_id)
            if not actor.is_admin:
                self._participant_role(actor, thread, "view a bargain")
            return BargainThreadView.model_validate(thread)

    def find_active_thread(self, buyer_id: str, product_id: str) -> Optional[BargainThreadView]:
        with get_db() as db:
            thread = BargainStore(db).find_active_thread(buyer_id, product_id)
            return BargainThreadView.model_validate(thread) if thread else None

    def resolved_price(self, buyer_id: str, product_id: str) -> Optional[ResolvedPriceEntry]:
        """Ledger entry the buyer currently holds for the product, if any."""
        with get_db() as db:
            return PricingLedger(db).get_entry(buyer_id, product_id)

    def list_threads(self, actor: Actor) -> List[BargainThreadView]:
        """Buyers see their threads, sellers threads on their products, admins everything."""
        with get_db() as db:
            store = BargainStore(db)
            if actor.role == ActorRole.BUYER:
                threads = store.list_threads_for_user(actor.user_id)
            elif actor.role == ActorRole.SELLER:
                threads = store.list_threads_for_seller(actor.user_id)
            else:
                threads = store.list_all_threads()
            return [BargainThreadView.model_validate(t) for t in threads]


# Singleton instance
_engine_instance: NegotiationEngine | None = None


def get_engine() -> NegotiationEngine:
    """Get the process-wide engine wired to the configured collaborators."""
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = NegotiationEngine()
    return _engine_instance


def reset_engine() -> None:
    """Reset the engine singleton (useful for testing)."""
    global _engine_instance
    _engine_instance = None
