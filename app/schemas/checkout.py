# app/schemas/checkout.py
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class CheckoutRequest(BaseModel):
    """Checkout initiation for a single course"""

    course_id: int = Field(..., examples=[42])
    email: EmailStr = Field(..., examples=["buyer@example.com"])
    name: str = Field(..., min_length=1, max_length=255, examples=["Ayşe Yılmaz"])
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, max_length=1000)
    discount_codes: List[str] = Field(
        default_factory=list, description="At most one code is honoured"
    )
    referral_code: Optional[str] = Field(None, max_length=64)
    locale: Optional[str] = Field(None, examples=["tr", "en"])
    user_id: Optional[str] = Field(
        None, description="External user id; the bearer token's subject wins"
    )

    @field_validator("name")
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("discount_codes", mode="before")
    def validate_discount_codes(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [x.strip() for x in v.split(",") if x.strip()]
        return v


class FreeCheckoutResponse(BaseModel):
    redirect_to_direct: bool = True
    redirect_url: str
    order_id: str
    enrollment_id: int
    enrollment_status: str


class ProviderCheckoutResponse(BaseModel):
    form_action: str
    form_data: Dict[str, Any]
    order_id: str


class DiscountPreviewRequest(BaseModel):
    course_id: int = Field(..., examples=[42])
    code: str = Field(..., max_length=64, examples=["SAVE20"])
    applied_codes: List[str] = Field(
        default_factory=list, description="Codes already applied to this checkout"
    )


class DiscountPreviewResponse(BaseModel):
    code: str
    effective_price: Decimal
    discount_amount: Decimal
    payable_amount: Decimal
    is_free: bool
    balance_after: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)
