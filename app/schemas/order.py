# app/schemas/order.py
from pydantic import BaseModel


class OrderResolutionResponse(BaseModel):
    """Enough for a client holding only the provider's reference to find its order"""

    order_id: str
    course_id: int
    course_name: str
    status: str
