# app/routers/payment.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from app.core.dependencies import (
    get_order_store,
    get_payment_callback_handler,
    get_payment_return_handler,
)
from app.schemas.order import OrderResolutionResponse
from app.services.order import OrderStore
from app.services.payment_return import FailureReason, PaymentReturnHandler
from app.utils.callback_parser import read_callback

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/payments",
    tags=["Payments"],
    responses={404: {"description": "Not found"}},
)


async def _redirect(request: Request, handler: PaymentReturnHandler) -> RedirectResponse:
    try:
        payload = await read_callback(request)
    except Exception:
        logger.exception("Could not read the provider callback body")
        outcome = handler.failure(FailureReason.INTERNAL_ERROR)
        return RedirectResponse(outcome.redirect_url, status_code=303)

    outcome = await run_in_threadpool(handler.handle, payload)
    return RedirectResponse(outcome.redirect_url, status_code=303)


@router.api_route("/shopier/callback", methods=["GET", "POST"])
async def shopier_callback(
    request: Request,
    handler: PaymentReturnHandler = Depends(get_payment_callback_handler),
):
    """
    Provider callback. Unsigned or badly signed payloads are refused.

    Always answers with a 303 to the success or failure page: the provider
    is redirecting the buyer's browser here, so there is no JSON to show.
    """
    return await _redirect(request, handler)


@router.api_route("/shopier/return", methods=["GET", "POST"])
async def shopier_return(
    request: Request,
    handler: PaymentReturnHandler = Depends(get_payment_return_handler),
):
    """Browser return. A signed payload is processed like the callback."""
    return await _redirect(request, handler)


@router.get("/orders/resolve", response_model=OrderResolutionResponse)
def resolve_order(
    order_id: str = Query(..., min_length=1, description="Our order id or the provider's payment id"),
    orders: OrderStore = Depends(get_order_store),
):
    order = orders.find_by_reference(order_id.strip())
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    return OrderResolutionResponse(
        order_id=order.order_id,
        course_id=order.course_id,
        course_name=order.course_name,
        status=order.status,
    )
