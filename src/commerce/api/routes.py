"""FastAPI routes for the commerce core.

Routers are thin: they translate request schemas into commands or service
calls and shape the response. Every error is raised and mapped by the
handlers registered in ``commerce.api.errors``.
"""

import json

from fastapi import APIRouter
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.api.schemas import (
    AddToCartRequest,
    AddVariantRequest,
    ApplyDiscountRequest,
    AppliedDiscountResponse,
    CartItemResponse,
    CartResponse,
    CheckoutRequestSchema,
    CheckoutResponse,
    ConfirmCodRequest,
    IdResponse,
    InitiatePaymentRequest,
    IssueCouponRequest,
    IssueGiftCardRequest,
    IssueVoucherRequest,
    MergeGuestCartRequest,
    OrderActionRequest,
    OrderItemResponse,
    OrderResponse,
    PaymentFailureRequest,
    ProcessRefundRequest,
    RefundRequestSchema,
    RegisterProductRequest,
    RepriceRequest,
    RestockRequest,
    StatusResponse,
    SweepRequest,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
    VerifyPaymentRequest,
)
from commerce.cart.cart import Cart
from commerce.cart.expiry import ExpireIdleCarts
from commerce.cart.management import AddToCart, ApplyDiscount, RemoveDiscount, RemoveFromCart, UpdateCartItem
from commerce.cart.merging import MergeGuestCart
from commerce.catalogue.management import AddVariant, RegisterProduct, RestockVariant
from commerce.catalogue.repricing import RepriceCatalogue
from commerce.checkout.orchestrator import CheckoutOrchestrator, CheckoutRequest
from commerce.discount.expiry import SweepExpiredDiscounts
from commerce.discount.issuance import IssueCoupon, IssueGiftCard, IssueVoucher
from commerce.order.lifecycle import OrderLifecycle
from commerce.order.order import Order
from commerce.payment.lifecycle import PaymentLifecycle


def _process(command):
    return current_domain.process(command, asynchronous=False)


# ---------------------------------------------------------------------------
# Catalogue Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=IdResponse)
async def register_product(body: RegisterProductRequest) -> IdResponse:
    return IdResponse(id=_process(RegisterProduct(**body.model_dump())))


@product_router.post("/{product_id}/variants", status_code=201, response_model=IdResponse)
async def add_variant(product_id: str, body: AddVariantRequest) -> IdResponse:
    return IdResponse(id=_process(AddVariant(product_id=product_id, **body.model_dump())))


@product_router.post("/{product_id}/variants/{sku}/restock", response_model=dict)
async def restock_variant(product_id: str, sku: str, body: RestockRequest) -> dict:
    stock = _process(RestockVariant(product_id=product_id, sku=sku, quantity=body.quantity))
    return {"sku": sku, "stock": stock}


# ---------------------------------------------------------------------------
# Discount Router
# ---------------------------------------------------------------------------
discount_router = APIRouter(prefix="/discounts", tags=["discounts"])


@discount_router.post("/coupons", status_code=201, response_model=IdResponse)
async def issue_coupon(body: IssueCouponRequest) -> IdResponse:
    return IdResponse(id=_process(IssueCoupon(**body.model_dump(exclude_none=True))))


@discount_router.post("/vouchers", status_code=201, response_model=IdResponse)
async def issue_voucher(body: IssueVoucherRequest) -> IdResponse:
    return IdResponse(id=_process(IssueVoucher(**body.model_dump(exclude_none=True))))


@discount_router.post("/gift-cards", status_code=201, response_model=IdResponse)
async def issue_gift_card(body: IssueGiftCardRequest) -> IdResponse:
    return IdResponse(id=_process(IssueGiftCard(**body.model_dump())))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


def _slot_response(slot):
    return AppliedDiscountResponse(code=slot.code, amount=slot.amount) if slot else None


def _cart_response(cart: Cart) -> CartResponse:
    totals = cart.totals()
    return CartResponse(
        cart_id=str(cart.id),
        status=cart.status,
        items=[
            CartItemResponse(
                item_id=str(item.id),
                product_id=str(item.product_id),
                sku=item.sku,
                karat=item.karat,
                stone_type=item.stone_type,
                unit_price=item.unit_price,
                quantity=item.quantity,
                selected_image=item.selected_image,
            )
            for item in cart.items
        ],
        coupon=_slot_response(cart.applied_coupon),
        voucher=_slot_response(cart.applied_voucher),
        gift_card=_slot_response(cart.applied_gift_card),
        **{k: v for k, v in totals.to_dict().items() if k != "total_discount"},
    )


def _load_cart_view(cart_id) -> CartResponse:
    return _cart_response(current_domain.repository_for(Cart).get(cart_id))


@cart_router.get("", response_model=CartResponse)
async def get_cart(user_id: str | None = None, session_id: str | None = None) -> CartResponse:
    cart = current_domain.repository_for(Cart).active_for(user_id=user_id, session_id=session_id)
    if cart is None:
        raise ObjectNotFoundError("No active cart")
    return _cart_response(cart)


@cart_router.post("/items", response_model=CartResponse)
async def add_cart_item(body: AddToCartRequest) -> CartResponse:
    return _load_cart_view(_process(AddToCart(**body.model_dump())))


@cart_router.put("/items/{item_id}", response_model=CartResponse)
async def update_cart_item(item_id: str, body: UpdateCartItemRequest) -> CartResponse:
    return _load_cart_view(_process(UpdateCartItem(item_id=item_id, **body.model_dump())))


@cart_router.delete("/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(item_id: str, user_id: str | None = None, session_id: str | None = None) -> CartResponse:
    return _load_cart_view(_process(RemoveFromCart(item_id=item_id, user_id=user_id, session_id=session_id)))


@cart_router.post("/discounts", response_model=CartResponse)
async def apply_discount(body: ApplyDiscountRequest) -> CartResponse:
    return _load_cart_view(_process(ApplyDiscount(**body.model_dump())))


@cart_router.delete("/discounts/{kind}", response_model=CartResponse)
async def remove_discount(kind: str, user_id: str | None = None, session_id: str | None = None) -> CartResponse:
    return _load_cart_view(_process(RemoveDiscount(kind=kind, user_id=user_id, session_id=session_id)))


@cart_router.post("/merge", response_model=StatusResponse)
async def merge_guest_cart(body: MergeGuestCartRequest) -> StatusResponse:
    cart_id = _process(MergeGuestCart(session_id=body.session_id, user_id=body.user_id))
    return StatusResponse(status="merged" if cart_id else "nothing-to-merge")


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
async def checkout(body: CheckoutRequestSchema) -> CheckoutResponse:
    result = CheckoutOrchestrator().checkout(
        CheckoutRequest(
            user_id=body.user_id,
            shipping_address=body.shipping_address.model_dump(exclude_none=True),
            billing_address=body.billing_address.model_dump(exclude_none=True) if body.billing_address else None,
            payment_method=body.payment_method,
            notes=body.notes,
            customer_email=body.customer_email,
        )
    )
    return CheckoutResponse(**result.__dict__)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        user_id=str(order.user_id),
        status=order.status,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                product_name=item.product_name,
                sku=item.sku,
                karat=item.karat,
                stone_type=item.stone_type,
                price_at_purchase=item.price_at_purchase,
                quantity=item.quantity,
                item_total=item.item_total,
            )
            for item in order.items
        ],
        subtotal=order.pricing.subtotal,
        total_discount=order.pricing.total_discount,
        total=order.pricing.total,
        currency=order.pricing.currency,
        tracking_number=order.tracking_number,
        estimated_delivery_date=order.estimated_delivery_date,
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return _order_response(OrderLifecycle().get(order_id))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderResponse:
    order = OrderLifecycle().update_status(
        order_id, body.status, tracking_number=body.tracking_number, reason=body.reason
    )
    return _order_response(order)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, body: OrderActionRequest) -> OrderResponse:
    order = OrderLifecycle().cancel(order_id, body.requester_id, reason=body.reason, as_admin=body.as_admin)
    return _order_response(order)


@order_router.post("/{order_id}/return", response_model=OrderResponse)
async def return_order(order_id: str, body: OrderActionRequest) -> OrderResponse:
    order = OrderLifecycle().return_order(order_id, body.requester_id, reason=body.reason, as_admin=body.as_admin)
    return _order_response(order)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])

# Routes that reach the gateway are plain ``def``: the adapters make blocking
# HTTP calls, so FastAPI runs these in its threadpool off the event loop.


@payment_router.post("/initiate", response_model=dict)
def initiate_payment(body: InitiatePaymentRequest) -> dict:
    return PaymentLifecycle().initiate_payment(body.order_id, body.user_id, body.method)


@payment_router.post("/verify", response_model=dict)
def verify_payment(body: VerifyPaymentRequest) -> dict:
    return PaymentLifecycle().handle_gateway_confirmation(
        body.gateway_order_id, body.gateway_payment_id, body.signature
    )


@payment_router.post("/failure", response_model=dict)
async def payment_failure(body: PaymentFailureRequest) -> dict:
    return PaymentLifecycle().handle_failure(body.gateway_order_id, body.reason, body.gateway_payment_id)


@payment_router.post("/{payment_id}/refunds", status_code=201, response_model=IdResponse)
def request_refund(payment_id: str, body: RefundRequestSchema) -> IdResponse:
    return IdResponse(id=PaymentLifecycle().initiate_refund(payment_id, body.amount, body.reason))


@payment_router.put("/{payment_id}/refunds/{refund_id}", response_model=StatusResponse)
async def process_refund(payment_id: str, refund_id: str, body: ProcessRefundRequest) -> StatusResponse:
    PaymentLifecycle().process_refund(payment_id, refund_id, body.status)
    return StatusResponse(status=body.status)


@payment_router.post("/cod/confirm", response_model=dict)
async def confirm_cod(body: ConfirmCodRequest) -> dict:
    return PaymentLifecycle().confirm_cod_payment(body.order_id, body.collected_amount)


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/sweep-discounts", response_model=dict)
async def sweep_discounts(body: SweepRequest) -> dict:
    return _process(SweepExpiredDiscounts(as_of=body.as_of))


@maintenance_router.post("/expire-carts", response_model=dict)
async def expire_carts(body: SweepRequest) -> dict:
    return {"expired": _process(ExpireIdleCarts(as_of=body.as_of))}


@maintenance_router.post("/reprice", response_model=dict)
async def reprice(body: RepriceRequest) -> dict:
    gold_rates = json.dumps(body.gold_rates) if body.gold_rates else None
    return {"variants_repriced": _process(RepriceCatalogue(gold_rates=gold_rates))}


routers = [
    product_router,
    discount_router,
    cart_router,
    checkout_router,
    order_router,
    payment_router,
    maintenance_router,
]
