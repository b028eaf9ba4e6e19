# app/utils/callback_parser.py
import json
import logging
from typing import Any, Dict, Literal, Mapping, Optional
from urllib.parse import parse_qsl

from fastapi import Request
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CallbackEncoding = Literal["form", "multipart", "json", "raw", "query"]


class CallbackPayload(BaseModel):
    """A provider callback, whatever wire format it arrived in."""

    encoding: CallbackEncoding
    status: Optional[str] = None
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    signature: Optional[str] = None
    random_nr: Optional[str] = None
    total_order_value: Optional[str] = None
    currency: Optional[str] = None
    custom_params: Dict[str, Any] = Field(default_factory=dict)
    fields: Dict[str, str] = Field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return (self.status or "").strip().lower() == "success"

    @property
    def has_signature(self) -> bool:
        return bool(self.signature)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _decode_custom_params(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except ValueError:
        logger.warning(f"Callback custom_params is not JSON: {raw[:200]!r}")
        return {}
    return decoded if isinstance(decoded, dict) else {}


def parse_fields(
    body: Mapping[str, Any],
    query: Optional[Mapping[str, Any]] = None,
    encoding: CallbackEncoding = "form",
) -> CallbackPayload:
    """Normalise raw callback fields. Body values win over query parameters."""
    merged: Dict[str, str] = {}
    for source in (query or {}, body):
        for key, value in source.items():
            if isinstance(value, (dict, list)):
                value = json.dumps(value)
            elif value is not None and not isinstance(value, (str, int, float)):
                # File parts of a multipart body carry nothing we use
                continue
            merged[str(key)] = "" if value is None else str(value)

    custom_params = _decode_custom_params(merged.get("custom_params"))
    order_id = _clean(merged.get("platform_order_id")) or _clean(
        custom_params.get("orderId")
    )

    return CallbackPayload(
        encoding=encoding,
        status=_clean(merged.get("status")),
        order_id=order_id,
        payment_id=_clean(merged.get("payment_id")),
        signature=_clean(merged.get("signature")),
        random_nr=_clean(merged.get("random_nr")),
        total_order_value=_clean(merged.get("total_order_value")),
        currency=_clean(merged.get("currency")),
        custom_params=custom_params,
        fields=merged,
    )


def parse_raw_body(text: str) -> Dict[str, Any]:
    """JSON when it parses as an object, otherwise a query string."""
    text = (text or "").strip()
    if not text:
        return {}
    try:
        decoded = json.loads(text)
        if isinstance(decoded, dict):
            return decoded
    except ValueError:
        pass
    return dict(parse_qsl(text, keep_blank_values=True))


async def read_callback(request: Request) -> CallbackPayload:
    content_type = request.headers.get("content-type", "").lower()
    query = dict(request.query_params)
    body: Dict[str, Any] = {}
    encoding: CallbackEncoding = "query"

    if request.method == "POST":
        if "multipart/form-data" in content_type:
            form = await request.form()
            body = {key: value for key, value in form.items()}
            encoding = "multipart"
        elif "application/x-www-form-urlencoded" in content_type:
            form = await request.form()
            body = {key: value for key, value in form.items()}
            encoding = "form"
        elif "application/json" in content_type:
            raw = await request.body()
            body = parse_raw_body(raw.decode("utf-8", errors="replace"))
            encoding = "json"
        else:
            raw = await request.body()
            body = parse_raw_body(raw.decode("utf-8", errors="replace"))
            encoding = "raw" if body else "query"

    payload = parse_fields(body, query, encoding)
    logger.info(
        f"Callback received ({payload.encoding}): order={payload.order_id} "
        f"status={payload.status} payment={payload.payment_id}"
    )
    return payload
