"""Pydantic request/response schemas for the commerce API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class OwnerSchema(BaseModel):
    """A cart belongs to a customer or, before login, to a guest session."""

    user_id: str | None = None
    session_id: str | None = None


class AddressSchema(BaseModel):
    name: str
    line1: str
    line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str = "India"
    phone: str | None = None


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str
    product_code: str
    image_url: str | None = None
    net_weight: float = Field(ge=0)
    solitaire_weight: float = Field(ge=0, default=0.0)
    multi_diamond_weight: float = Field(ge=0, default=0.0)
    pointer_weight: float = Field(ge=0, default=0.0)
    gemstone_solitaire_weight: float = Field(ge=0, default=0.0)
    gemstone_pointer_weight: float = Field(ge=0, default=0.0)
    is_pendant_with_chain: bool = False
    chain_karat: int | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Solitaire Ring",
                    "product_code": "RNG-001",
                    "net_weight": 3.2,
                    "solitaire_weight": 0.5,
                }
            ]
        }
    }


class AddVariantRequest(BaseModel):
    karat: int
    stone_type: Literal["regular_diamond", "gemstone", "colored_diamond"]
    sku: str
    stock: int = Field(ge=0, default=0)
    is_available: bool = True


class RestockRequest(BaseModel):
    quantity: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------
class IssueCouponRequest(BaseModel):
    code: str
    discount_type: Literal["percentage", "flat"]
    value: float = Field(ge=0)
    max_discount_amount: float | None = Field(ge=0, default=None)
    minimum_subtotal: float = Field(ge=0, default=0.0)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    usage_limit: int | None = Field(ge=1, default=None)


class IssueVoucherRequest(BaseModel):
    code: str
    name: str | None = None
    amount: float = Field(gt=0)
    minimum_value: float = Field(ge=0, default=0.0)
    start_from: datetime | None = None
    valid_upto: datetime


class IssueGiftCardRequest(BaseModel):
    code: str
    amount: float = Field(gt=0)
    valid_upto: datetime
    activate: bool = True


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(OwnerSchema):
    product_id: str
    sku: str
    karat: int
    quantity: int = Field(ge=1, default=1)
    selected_image: str | None = None


class UpdateCartItemRequest(OwnerSchema):
    quantity: int = Field(ge=0)


class ApplyDiscountRequest(OwnerSchema):
    kind: Literal["coupon", "voucher", "gift_card"]
    code: str
    amount: float | None = Field(ge=0, default=None)


class MergeGuestCartRequest(BaseModel):
    session_id: str
    user_id: str


class CartItemResponse(BaseModel):
    item_id: str
    product_id: str
    sku: str
    karat: int
    stone_type: str | None = None
    unit_price: float
    quantity: int
    selected_image: str | None = None


class AppliedDiscountResponse(BaseModel):
    code: str
    amount: float


class CartResponse(BaseModel):
    cart_id: str
    status: str
    items: list[CartItemResponse]
    coupon: AppliedDiscountResponse | None = None
    voucher: AppliedDiscountResponse | None = None
    gift_card: AppliedDiscountResponse | None = None
    subtotal: float
    discount_amount: float
    voucher_amount: float
    gift_card_amount: float
    total: float
    item_count: int


# ---------------------------------------------------------------------------
# Checkout and orders
# ---------------------------------------------------------------------------
class CheckoutRequestSchema(BaseModel):
    user_id: str
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: Literal["gateway", "cod"] = "gateway"
    notes: str | None = None
    customer_email: str | None = None


class CheckoutResponse(BaseModel):
    order_id: str
    order_number: str
    total: float
    item_count: int
    status: str
    cart_cleared: bool


class UpdateOrderStatusRequest(BaseModel):
    status: Literal["pending", "processing", "shipped", "delivered", "cancelled", "failed", "returned"]
    tracking_number: str | None = None
    reason: str | None = None


class OrderActionRequest(BaseModel):
    requester_id: str
    reason: str | None = None
    as_admin: bool = False


class OrderItemResponse(BaseModel):
    product_id: str
    product_name: str
    sku: str
    karat: int
    stone_type: str | None = None
    price_at_purchase: float
    quantity: int
    item_total: float


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    user_id: str
    status: str
    payment_method: str
    payment_status: str
    items: list[OrderItemResponse]
    subtotal: float
    total_discount: float
    total: float
    currency: str
    tracking_number: str | None = None
    estimated_delivery_date: datetime | None = None


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class InitiatePaymentRequest(BaseModel):
    order_id: str
    user_id: str
    method: Literal["gateway", "cod"]


class VerifyPaymentRequest(BaseModel):
    gateway_order_id: str
    gateway_payment_id: str
    signature: str


class PaymentFailureRequest(BaseModel):
    gateway_order_id: str
    reason: str
    gateway_payment_id: str | None = None


class RefundRequestSchema(BaseModel):
    amount: float = Field(gt=0)
    reason: str | None = None


class ProcessRefundRequest(BaseModel):
    status: Literal["processed", "failed"]


class ConfirmCodRequest(BaseModel):
    order_id: str
    collected_amount: float = Field(ge=0)


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
class SweepRequest(BaseModel):
    as_of: datetime | None = None


class RepriceRequest(BaseModel):
    gold_rates: dict[int, float] | None = None


# ---------------------------------------------------------------------------
# Generic responses
# ---------------------------------------------------------------------------
class IdResponse(BaseModel):
    id: str


class StatusResponse(BaseModel):
    status: str = "ok"
