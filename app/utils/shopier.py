# app/utils/shopier.py
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict

from app.models.order import Order
from app.services.signature import SignatureVerifier
from app.utils.money import format_amount

logger = logging.getLogger(__name__)

# Digital goods still need an address on the hosted form
DEFAULT_ADDRESS = "Dijital Ürün"
DEFAULT_CITY = "İstanbul"
DEFAULT_POSTCODE = "34000"
DEFAULT_COUNTRY = "TR"


@dataclass(frozen=True)
class ProviderRedirect:
    form_action: str
    form_data: Dict[str, Any]
    order_id: str


class ShopierGateway:
    """Builds the signed form the buyer's browser posts to Shopier."""

    def __init__(
        self,
        api_key: str,
        signer: SignatureVerifier,
        base_url: str,
        form_action: str = "https://www.shopier.com/ShowProduct/api_pay4.php",
        website_index: int = 1,
        currency: int = 0,
        product_type: int = 1,
    ):
        self.api_key = api_key
        self.signer = signer
        self.base_url = base_url.rstrip("/")
        self.form_action = form_action
        self.website_index = website_index
        self.currency = currency
        self.product_type = product_type

    @property
    def callback_url(self) -> str:
        return f"{self.base_url}/payments/shopier/callback"

    @property
    def return_url(self) -> str:
        return f"{self.base_url}/payments/shopier/return"

    @staticmethod
    def split_name(full_name: str):
        parts = (full_name or "").split()
        if not parts:
            return "", ""
        return parts[0], " ".join(parts[1:])

    def build_payment_form(self, order: Order) -> ProviderRedirect:
        nonce = self.signer.generate_nonce()
        amount = format_amount(order.amount)
        first_name, last_name = self.split_name(order.buyer_name)

        billing = order.custom_data or {}
        address = billing.get("address") or DEFAULT_ADDRESS
        city = billing.get("city") or DEFAULT_CITY
        postcode = billing.get("zip_code") or DEFAULT_POSTCODE

        custom_params = {
            "orderId": order.order_id,
            "courseId": order.course_id,
            "courseName": order.course_name,
            "userEmail": order.buyer_email,
            "userId": order.buyer_ref,
            "discountCode": order.discount_code or "",
            "totalDiscount": format_amount(order.discount_amount or 0),
            "locale": order.locale,
        }

        form_data = {
            "API_key": self.api_key,
            "website_index": self.website_index,
            "platform_order_id": order.order_id,
            "product_name": order.course_name,
            "product_type": self.product_type,
            "buyer_name": first_name,
            "buyer_surname": last_name,
            "buyer_email": order.buyer_email,
            "buyer_phone": order.buyer_phone or "",
            "buyer_account_age": 0,
            "buyer_id_nr": 0,
            "billing_address": address,
            "billing_city": city,
            "billing_country": DEFAULT_COUNTRY,
            "billing_postcode": postcode,
            "shipping_address": address,
            "shipping_city": city,
            "shipping_country": DEFAULT_COUNTRY,
            "shipping_postcode": postcode,
            "total_order_value": amount,
            "currency": self.currency,
            "platform": 0,
            "is_in_frame": 0,
            "current_language": 1 if order.locale == "en" else 0,
            "modul_version": "1.0.0",
            "random_nr": nonce,
            "custom_params": json.dumps(custom_params, ensure_ascii=False),
            "signature": self.signer.sign(nonce, order.order_id, amount, self.currency),
            "return_url": self.return_url,
            "callback_url": self.callback_url,
        }

        logger.info(f"Shopier form prepared for order {order.order_id}: {amount}")
        return ProviderRedirect(
            form_action=self.form_action,
            form_data=form_data,
            order_id=order.order_id,
        )
