"""Checkout orchestrator: turns the customer's cart into an Order.

Stock, discounts and the order live in separate aggregates, so checkout runs
as a saga without a surrounding transaction:

    1. load the cart and resolve every line against the catalogue (no writes)
    2. price the lines and build the immutable item snapshots
    3. reserve stock for all lines
    4. consume the applied discounts
    5. persist the order
    6. convert the cart
    7. notify the customer

Steps 3 to 5 register their undo on a compensation stack. When a later step
fails the stack is unwound newest first. If every undo succeeds the original
error is re-raised; if any undo fails an InternalInconsistencyError carries
the outcome of each one, plus actual vs. expected stock for every SKU that
could not be released.
"""

import json
from dataclasses import dataclass, field
from typing import Callable

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.cart.management import CheckOutCart
from commerce.catalogue import get_catalogue
from commerce.discount import get_discounts
from commerce.discount.port import DiscountKind, Redemption
from commerce.errors import ConflictError, InsufficientStockError, InternalInconsistencyError, NotFoundError
from commerce.inventory.ledger import StockLedger, StockLine
from commerce.notification import notify
from commerce.order.order import Address, PaymentMethod, generate_order_number
from commerce.order.placement import PlaceOrder
from commerce.pricing.cart_totals import compute_cart_totals
from commerce.pricing.variant_price import round_half_up
from commerce.settings import get_settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutRequest:
    user_id: str
    shipping_address: dict
    payment_method: str = PaymentMethod.GATEWAY.value
    billing_address: dict | None = None
    notes: str | None = None
    customer_email: str | None = None


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    order_number: str
    total: float
    item_count: int
    status: str
    cart_cleared: bool


@dataclass(frozen=True)
class _PricedLine:
    unit_price: float
    quantity: int


@dataclass
class _Compensations:
    """Undo actions registered by completed saga steps."""

    steps: list[tuple[str, Callable[[], None]]] = field(default_factory=list)

    def push(self, name: str, undo: Callable[[], None]) -> None:
        self.steps.append((name, undo))

    def unwind(self) -> list[dict]:
        outcomes = []
        while self.steps:
            name, undo = self.steps.pop()
            try:
                undo()
            except Exception as exc:
                outcome = {"step": name, "ok": False, "error": str(exc)}
                failures = getattr(exc, "details", {}).get("failures")
                if failures:
                    outcome["failures"] = failures
                outcomes.append(outcome)
            else:
                outcomes.append({"step": name, "ok": True})
        return outcomes


def _money(value: float) -> float:
    return float(round_half_up(value, 2))


class CheckoutOrchestrator:
    def __init__(self, ledger: StockLedger | None = None, discounts=None):
        self.ledger = ledger or StockLedger()
        self._discounts = discounts

    @property
    def discounts(self):
        return self._discounts or get_discounts()

    # -------------------------------------------------------------------
    # Validation and pricing (read-only)
    # -------------------------------------------------------------------
    def _load_cart(self, user_id) -> Cart:
        repo = current_domain.repository_for(Cart)
        cart = repo.active_for(user_id=user_id)
        if cart is not None and cart.is_expired():
            cart.expire()
            repo.add(cart)
            logger.info("Expired cart found at checkout", cart_id=str(cart.id), user_id=str(user_id))
            cart = None
        if cart is None or not cart.items:
            raise ValidationError({"cart": ["Cart is empty"]})
        return cart

    def _validate_addresses(self, request: CheckoutRequest) -> tuple[dict, dict]:
        shipping = dict(request.shipping_address or {})
        billing = dict(request.billing_address or shipping)
        # Address construction runs the value object's own field validation
        Address(**shipping)
        Address(**billing)
        return shipping, billing

    def _snapshot_items(self, cart: Cart) -> list[dict]:
        catalogue = get_catalogue()
        snapshots = []
        for item in cart.items:
            variant = catalogue.get_variant(item.sku, product_id=str(item.product_id))
            if variant is None:
                raise NotFoundError(f"Variant {item.sku} no longer exists")
            if not variant.product_active:
                raise ConflictError(f"Product for {item.sku} is no longer active", sku=item.sku)
            if not variant.is_available:
                raise ConflictError(f"Variant {item.sku} is not available", sku=item.sku)
            if variant.stock < item.quantity:
                raise InsufficientStockError(item.sku, item.quantity, variant.stock)

            snapshots.append(
                {
                    "product_id": variant.product_id,
                    "product_name": variant.product_name,
                    "product_image": item.selected_image or variant.product_image,
                    "sku": variant.sku,
                    "karat": variant.karat,
                    "stone_type": variant.stone_type,
                    "price_at_purchase": variant.price,
                    "quantity": item.quantity,
                    "gross_weight": variant.gross_weight,
                }
            )
        return snapshots

    def _price(self, cart: Cart, snapshots: list[dict]) -> dict:
        totals = compute_cart_totals(
            [_PricedLine(s["price_at_purchase"], s["quantity"]) for s in snapshots],
            applied_coupon=cart.applied_coupon,
            applied_voucher=cart.applied_voucher,
            applied_gift_card=cart.applied_gift_card,
        )
        settings = get_settings()
        shipping_charge = _money(settings.shipping_charge)
        tax_amount = _money(totals.total * settings.order_tax_percent / 100)
        return {
            "subtotal": totals.subtotal,
            "coupon_amount": totals.discount_amount,
            "voucher_amount": totals.voucher_amount,
            "gift_card_amount": totals.gift_card_amount,
            "total_discount": totals.total_discount,
            "shipping_charge": shipping_charge,
            "tax_amount": tax_amount,
            "total": _money(totals.total + shipping_charge + tax_amount),
            "currency": settings.currency,
            "item_count": totals.item_count,
        }

    def _redemptions(self, cart: Cart, pricing: dict) -> list[Redemption]:
        """Applied slots with the amounts this order actually takes from each."""
        amounts = {
            DiscountKind.COUPON: pricing["coupon_amount"],
            DiscountKind.VOUCHER: pricing["voucher_amount"],
            DiscountKind.GIFT_CARD: pricing["gift_card_amount"],
        }
        redemptions = []
        for applied in cart.applied_discounts():
            amount = amounts[applied.kind]
            if applied.kind == DiscountKind.GIFT_CARD and amount <= 0:
                continue
            redemptions.append(
                Redemption(kind=applied.kind, code=applied.code, reference_id=applied.reference_id, amount=amount)
            )
        return redemptions

    # -------------------------------------------------------------------
    # Saga
    # -------------------------------------------------------------------
    def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        payment_method = PaymentMethod(request.payment_method)
        shipping, billing = self._validate_addresses(request)
        cart = self._load_cart(request.user_id)
        snapshots = self._snapshot_items(cart)
        pricing = self._price(cart, snapshots)
        redemptions = self._redemptions(cart, pricing)

        order_number = generate_order_number()
        user_id = str(request.user_id)
        lines = [StockLine(product_id=s["product_id"], sku=s["sku"], quantity=s["quantity"]) for s in snapshots]
        log = logger.bind(order_number=order_number, user_id=user_id, cart_id=str(cart.id))
        compensations = _Compensations()

        # reserve_all compensates its own partial progress
        self.ledger.reserve_all(lines)
        compensations.push("release_stock", lambda: self.ledger.release_all(lines))

        try:
            consumed = self.discounts.consume_applied(redemptions, user_id, order_number)
        except Exception as exc:
            log.warning("Discount consumption failed, releasing stock", error=str(exc))
            self._compensate(compensations, exc, order_number, log)
            raise

        compensations.push(
            "restore_discounts",
            lambda: self.discounts.restore_consumed(consumed, user_id, order_number),
        )

        discounts = {
            redemption.kind.value: {
                "code": redemption.code,
                "reference_id": redemption.reference_id,
                "amount": redemption.amount,
            }
            for redemption in consumed
        }
        try:
            order_id = current_domain.process(
                PlaceOrder(
                    order_number=order_number,
                    user_id=user_id,
                    customer_email=request.customer_email,
                    items=json.dumps(snapshots),
                    shipping_address=json.dumps(shipping),
                    billing_address=json.dumps(billing),
                    pricing=json.dumps({k: v for k, v in pricing.items() if k != "item_count"}),
                    discounts=json.dumps(discounts),
                    payment_method=payment_method.value,
                    notes=request.notes,
                ),
                asynchronous=False,
            )
        except Exception as exc:
            log.error("Order could not be persisted, compensating", error=str(exc))
            self._compensate(compensations, exc, order_number, log)
            raise

        cart_cleared = self._clear_cart(cart, order_id, log)

        notify(
            request.customer_email,
            "order-placed",
            {
                "order_number": order_number,
                "total": pricing["total"],
                "item_count": pricing["item_count"],
                "payment_method": payment_method.value,
            },
        )
        log.info("Order placed", order_id=order_id, total=pricing["total"])

        return CheckoutResult(
            order_id=order_id,
            order_number=order_number,
            total=pricing["total"],
            item_count=pricing["item_count"],
            status="pending",
            cart_cleared=cart_cleared,
        )

    def _compensate(self, compensations: _Compensations, cause: Exception, order_number: str, log) -> None:
        outcomes = compensations.unwind()
        if all(outcome["ok"] for outcome in outcomes):
            log.info("Checkout rolled back", compensations=outcomes)
            return

        log.error("Checkout rollback incomplete; manual correction required", compensations=outcomes)
        raise InternalInconsistencyError(
            f"Checkout {order_number} could not be fully rolled back",
            order_number=order_number,
            cause=str(cause),
            compensations=outcomes,
            stock_failures=[f for o in outcomes if o["step"] == "release_stock" for f in o.get("failures", [])],
        ) from cause

    def _clear_cart(self, cart: Cart, order_id: str, log) -> bool:
        try:
            current_domain.process(CheckOutCart(cart_id=str(cart.id), order_id=order_id), asynchronous=False)
        except Exception as exc:
            log.error("Cart could not be cleared after checkout", order_id=order_id, error=str(exc))
            return False
        return True
