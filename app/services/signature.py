# app/services/signature.py
import base64
import hashlib
import hmac
import logging
import secrets
from decimal import InvalidOperation
from typing import Iterable, Optional, Union

from app.utils.money import Number, format_amount

logger = logging.getLogger(__name__)


class SignatureVerifier:
    """
    Signs outbound checkout payloads and verifies provider callbacks.

    The provider signs ``random_nr + platform_order_id + total_order_value +
    currency`` with HMAC-SHA256 over the shared secret, base64 encoded.
    """

    def __init__(
        self,
        secret: str,
        sandbox_prefixes: Iterable[str] = (),
        sandbox_enabled: bool = False,
    ):
        self.secret = secret or ""
        self.sandbox_prefixes = tuple(p for p in sandbox_prefixes if p)
        self.sandbox_enabled = sandbox_enabled

    @staticmethod
    def canonical_string(
        nonce: Union[str, int], order_id: str, amount: Number, currency: Union[str, int]
    ) -> str:
        # Callbacks carry the amount exactly as it was signed; keep it verbatim
        value = amount if isinstance(amount, str) else format_amount(amount)
        return f"{nonce}{order_id}{value}{currency}"

    @staticmethod
    def compute(
        nonce: Union[str, int],
        order_id: str,
        amount: Number,
        currency: Union[str, int],
        secret: str,
    ) -> str:
        message = SignatureVerifier.canonical_string(nonce, order_id, amount, currency)
        digest = hmac.new(
            secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    @staticmethod
    def generate_nonce() -> int:
        return 100000 + secrets.randbelow(900000)

    def sign(self, nonce: Union[str, int], order_id: str, amount: Number, currency: Union[str, int]) -> str:
        return self.compute(nonce, order_id, amount, currency, self.secret)

    def verify(
        self,
        nonce: Optional[str],
        order_id: Optional[str],
        amount: Optional[Number],
        currency: Optional[Union[str, int]],
        signature: Optional[str],
        secret: Optional[str] = None,
    ) -> bool:
        secret = self.secret if secret is None else secret
        fields = {
            "random_nr": nonce,
            "platform_order_id": order_id,
            "total_order_value": amount,
            "currency": currency,
            "signature": signature,
        }
        missing = [name for name, value in fields.items() if value is None or value == ""]
        if missing or not secret:
            logger.warning(
                f"Signature verification failed, missing: {missing or ['secret']}"
            )
            return False

        try:
            expected = self.compute(nonce, order_id, amount, currency, secret)
        except (InvalidOperation, ValueError):
            logger.warning(f"Signature verification failed, bad amount: {amount!r}")
            return False

        is_valid = hmac.compare_digest(expected.encode("ascii"), str(signature).encode("utf-8"))
        if not is_valid:
            logger.warning(f"Signature mismatch for order {order_id}")
        return is_valid

    def is_sandbox_order(self, order_id: Optional[str]) -> bool:
        if not self.sandbox_enabled or not order_id:
            return False
        return order_id.startswith(self.sandbox_prefixes)
