# app/routers/checkout.py
from typing import Optional, Union

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.dependencies import (
    get_optional_user_id,
    get_payment_initiation_service,
)
from app.core.limiter import limiter
from app.schemas.checkout import (
    CheckoutRequest,
    DiscountPreviewRequest,
    DiscountPreviewResponse,
    FreeCheckoutResponse,
    ProviderCheckoutResponse,
)
from app.services.discount import DiscountEvaluator
from app.services.payment_initiation import (
    BuyerDetails,
    FreeEnrollmentResult,
    PaymentInitiationService,
    resolve_buyer_ref,
)
from app.utils.money import ZERO

router = APIRouter(
    prefix="/checkout",
    tags=["Checkout"],
    responses={404: {"description": "Not found"}},
)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (
        request.client.host if request.client else None
    )


def pick_locale(locale: Optional[str]) -> str:
    if locale and locale in settings.supported_locales:
        return locale
    return settings.default_locale


@router.post(
    "",
    response_model=Union[FreeCheckoutResponse, ProviderCheckoutResponse],
)
@limiter.limit(settings.checkout_rate_limit)
def create_checkout(
    request: Request,
    checkout_in: CheckoutRequest,
    token_user_id: Optional[str] = Depends(get_optional_user_id),
    service: PaymentInitiationService = Depends(get_payment_initiation_service),
):
    """
    Start a checkout.

    Returns the signed provider form for paid orders, or a direct redirect
    to the success page when the discount covers the whole price.
    """
    buyer = BuyerDetails(
        email=checkout_in.email,
        name=checkout_in.name,
        buyer_ref=resolve_buyer_ref(
            token_user_id, checkout_in.user_id, checkout_in.email
        ),
        locale=pick_locale(checkout_in.locale),
        phone=checkout_in.phone,
        address=checkout_in.address,
        city=checkout_in.city,
        zip_code=checkout_in.zip_code,
        notes=checkout_in.notes,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    result = service.initiate(
        checkout_in.course_id,
        buyer,
        discount_codes=checkout_in.discount_codes,
        referral_code=checkout_in.referral_code,
    )

    if isinstance(result, FreeEnrollmentResult):
        return FreeCheckoutResponse(
            redirect_url=result.redirect_url,
            order_id=result.order_id,
            enrollment_id=result.enrollment_id,
            enrollment_status=result.outcome,
        )
    return ProviderCheckoutResponse(
        form_action=result.form_action,
        form_data=result.form_data,
        order_id=result.order_id,
    )


@router.post("/discount-preview", response_model=DiscountPreviewResponse)
def preview_discount(
    preview_in: DiscountPreviewRequest, db: Session = Depends(get_db)
):
    """Quote a discount code for a course without using it up."""
    course = PaymentInitiationService.get_course_or_reject(db, preview_in.course_id)
    quote = DiscountEvaluator(db).quote(
        preview_in.code, course, prior_applied=preview_in.applied_codes
    )
    return DiscountPreviewResponse(
        code=quote.code,
        effective_price=quote.effective_price,
        discount_amount=quote.discount_amount,
        payable_amount=quote.payable_amount,
        is_free=quote.payable_amount <= ZERO,
        balance_after=quote.balance_after,
    )
