import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PaymentStatusEnum(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PaymentMethodEnum(str, Enum):
    STRIPE = "STRIPE"


class CamelModel(BaseModel):
    """Base schema speaking camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class OrderCreateRequest(CamelModel):
    book_ids: list[uuid.UUID] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class OrderPlaceSuccessfully(CamelModel):
    order_id: uuid.UUID
    payment_url: str


class CheckoutLineItem(BaseModel, extra="forbid"):
    """One priced entry sent to the payment provider. `unit_amount` is in cents."""

    name: str
    description: str
    unit_amount: int = Field(..., ge=0)
    quantity: int = Field(1, ge=1)


class CheckoutSession(BaseModel):
    session_id: str
    url: str


class UserSummary(CamelModel):
    id: uuid.UUID
    name: str
    email: str


class BookSummary(CamelModel):
    id: uuid.UUID
    title: str
    description: str | None = None
    price: Decimal


class OrderItemResponse(CamelModel):
    id: uuid.UUID
    book_id: uuid.UUID
    price: Decimal
    quantity: int
    book: BookSummary | None = None


class OrderResponse(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    amount: Decimal
    payment_status: PaymentStatusEnum
    payment_method: PaymentMethodEnum
    checkout_session_id: str | None = None
    created_at: datetime
    updated_at: datetime
    user: UserSummary | None = None
    items: list[OrderItemResponse] = []
