"""
Bargain endpoints.

WHAT: Open, counter, revise, accept, reject and revoke bargains; thread messages
WHY: Buyers and sellers negotiate a per-unit price before checkout
HOW: Thin FastAPI handlers over NegotiationEngine; lost races are retried
     a bounded number of times before surfacing as 409
"""

from fastapi import APIRouter, Depends, status

from ....models.api_schemas import (
    BargainListResponse,
    CreateBargainRequest,
    MessageRequest,
    PriceActionRequest,
    RejectRequest,
    ResolvedPriceResponse,
)
from ....models.bargain import Actor, BargainThreadView
from ....services.negotiation_engine import NegotiationEngine
from ....utils.retry import retry_on_conflict
from ...deps import get_actor, get_negotiation_engine

router = APIRouter()


@router.post("/bargains", response_model=BargainThreadView, status_code=status.HTTP_201_CREATED)
def create_bargain(
    request: CreateBargainRequest,
    actor: Actor = Depends(get_actor),
    engine: NegotiationEngine = Depends(get_negotiation_engine),
):
    """
    Open a bargain on a product.

    Returns 409 when the buyer already has an open thread for the product.
    """
    return engine.submit_offer(actor, request.product_id, request.proposed_price, request.message)


@router.get("/bargains", response_model=BargainListResponse)
def list_bargains(
    actor: Actor = Depends(get_actor),
    engine: NegotiationEngine = Depends(get_negotiation_engine),
):
    threads = engine.list_threads(actor)
    return BargainListResponse(threads=threads, total=len(threads))


@router.get("/bargains/{thread_id}", response_model=BargainThreadView)
def get_bargain(
    thread_id: str,
    actor: Actor = Depends(get_actor),
    engine: NegotiationEngine = Depends(get_negotiation_engine),
):
    return engine.get_thread(actor, thread_id)


@router.post("/bargains/{thread_id}/offer", response_model=BargainThreadView)
def revise_offer(
    thread_id: str,
    request: PriceActionRequest,
    actor: Actor = Depends(get_actor),
    engine: NegotiationEngine = Depends(get_negotiation_engine),
):
    return retry_on_conflict(
        lambda: engine.revise_offer(actor, thread_id, request.amount, request.message)
    )


@router.post("/bargains/{thread_id}/counter", response_model=BargainThreadView)
def counter_offer(
    thread_id: str,
    request: PriceActionRequest,
    actor: Actor = Depends(get_actor),
    engine: NegotiationEngine = Depends(get_negotiation_engine),
):
    return retry_on_conflict(
        lambda: engine.counter_offer(actor, thread_id, request.amount, request.message)
    )


@router.post("/bargains/{thread_id}/accept", response_model=BargainThreadView)
def accept_bargain(
    thread_id: str,
    actor: Actor = Depends(get_actor),
    engine: NegotiationEngine = Depends(get_negotiation_engine),
):
    """
    Accept the other side's latest price.

    Of two racing accepts exactly one wins; the other sees 409 THREAD_CLOSED.
    """
    return retry_on_conflict(lambda: engine.accept(actor, thread_id))


@router.post("/bargains/{thread_id}/reject", response_model=BargainThreadView)
def reject_bargain(
    thread_id: str,
    request: RejectRequest | None = None,
    actor: Actor = Depends(get_actor),
    engine: NegotiationEngine = Depends(get_negotiation_engine),
):
    message = request.message if request else None
    return retry_on_conflict(lambda: engine.reject(actor, thread_id, message))


@router.post("/bargains/{thread_id}/revoke", response_model=BargainThreadView)
def revoke_bargain(
    thread_id: str,
    actor: Actor = Depends(get_actor),
    engine: NegotiationEngine = Depends(get_negotiation_engine),
):
    return retry_on_conflict(lambda: engine.revoke_acceptance(actor, thread_id))


@router.post("/bargains/{thread_id}/messages", response_model=BargainThreadView)
def post_message(
    thread_id: str,
    request: MessageRequest,
    actor: Actor = Depends(get_actor),
    engine: NegotiationEngine = Depends(get_negotiation_engine),
):
    return retry_on_conflict(lambda: engine.append_message(actor, thread_id, request.text))


@router.get("/pricing/{product_id}", response_model=ResolvedPriceResponse)
def get_resolved_price(
    product_id: str,
    actor: Actor = Depends(get_actor),
    engine: NegotiationEngine = Depends(get_negotiation_engine),
):
    """Price the caller would pay for one unit if bargaining has settled it."""
    entry = engine.resolved_price(actor.user_id, product_id)
    return ResolvedPriceResponse(
        product_id=product_id,
        buyer_id=actor.user_id,
        resolved_price=entry.price if entry else None,
        source_thread_id=entry.source_thread_id if entry else None
    )
