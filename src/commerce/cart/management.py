"""Cart management: commands and handler.

Carts are created lazily on first use. Item changes are checked against the
catalogue (variant exists, is purchasable, stock covers the new quantity) and
priced from the variant, never from the caller. After an item change the
coupon and voucher are re-validated against the new subtotal; a slot that no
longer applies is dropped with a warning instead of failing the change.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.catalogue import get_catalogue
from commerce.discount import get_discounts
from commerce.discount.port import DiscountKind
from commerce.domain import commerce
from commerce.errors import ConflictError, DiscountNotFoundError, InsufficientStockError

logger = structlog.get_logger(__name__)

_REVALIDATED_KINDS = (DiscountKind.COUPON, DiscountKind.VOUCHER)


@commerce.command(part_of="Cart")
class AddToCart:
    user_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=64)
    karat = Integer(required=True)
    quantity = Integer(required=True, min_value=1)
    selected_image = String(max_length=500)


@commerce.command(part_of="Cart")
class UpdateCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)


@commerce.command(part_of="Cart")
class RemoveFromCart:
    user_id = Identifier()
    session_id = String(max_length=255)
    item_id = Identifier(required=True)


@commerce.command(part_of="Cart")
class ApplyDiscount:
    """Apply a code to the cart; ``amount`` is the balance to redeem for gift cards."""

    user_id = Identifier()
    session_id = String(max_length=255)
    kind = String(required=True, choices=DiscountKind)
    code = String(required=True, max_length=50)
    amount = Float(min_value=0.0)


@commerce.command(part_of="Cart")
class RemoveDiscount:
    user_id = Identifier()
    session_id = String(max_length=255)
    kind = String(required=True, max_length=20)  # coupon | voucher | gift_card | all


@commerce.command(part_of="Cart")
class CheckOutCart:
    cart_id = Identifier(required=True)
    order_id = Identifier(required=True)


def _load_cart(repo, command, create=True) -> Cart:
    if not command.user_id and not command.session_id:
        raise ValidationError({"owner": ["A user id or a guest session id is required"]})

    cart = repo.active_for(user_id=command.user_id, session_id=command.session_id)
    if cart is not None and cart.is_expired():
        cart.expire()
        repo.add(cart)
        cart = None

    if cart is None:
        if not create:
            raise ObjectNotFoundError("No active cart")
        cart = Cart.create(user_id=command.user_id, session_id=command.session_id)
    return cart


def _resolve_variant(product_id, sku, karat=None):
    variant = get_catalogue().get_variant(sku, product_id=product_id)
    if variant is None:
        raise ObjectNotFoundError(f"Variant {sku} not found")
    if karat is not None and variant.karat != karat:
        raise ValidationError({"karat": [f"Variant {sku} is {variant.karat}k, not {karat}k"]})
    if not variant.purchasable:
        raise ConflictError(f"Variant {sku} is not available", sku=sku)
    return variant


def revalidate_discounts(cart: Cart) -> None:
    """Refresh coupon/voucher amounts for the current subtotal; drop those that no longer apply."""
    if not cart.items:
        for redemption in cart.applied_discounts():
            cart.remove_discount(redemption.kind, reason="cart emptied")
        return

    subtotal = cart.totals().subtotal
    for kind in _REVALIDATED_KINDS:
        applied = cart.slot(kind)
        if applied is None:
            continue
        try:
            redemption = get_discounts().validate(kind, applied.code, subtotal)
        except (ValidationError, DiscountNotFoundError) as exc:
            logger.warning(
                "Dropping discount that no longer applies",
                cart_id=str(cart.id),
                kind=kind.value,
                code=applied.code,
                error=str(exc),
            )
            cart.remove_discount(kind, reason=str(exc))
            continue
        if redemption.amount != applied.amount:
            cart.apply_discount(redemption)


@commerce.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = _load_cart(repo, command)
        variant = _resolve_variant(command.product_id, command.sku, command.karat)

        line = cart.line_for(command.product_id, command.karat, command.sku)
        wanted = (line.quantity if line else 0) + command.quantity
        if wanted > variant.stock:
            raise InsufficientStockError(variant.sku, wanted, variant.stock)

        cart.add_item(
            product_id=variant.product_id,
            sku=variant.sku,
            karat=variant.karat,
            stone_type=variant.stone_type,
            unit_price=variant.price,
            quantity=command.quantity,
            selected_image=command.selected_image or variant.product_image,
        )
        revalidate_discounts(cart)
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        repo = current_domain.repository_for(Cart)
        cart = _load_cart(repo, command, create=False)

        if command.quantity > 0:
            item = cart.find_item(command.item_id)
            variant = _resolve_variant(item.product_id, item.sku)
            if command.quantity > variant.stock:
                raise InsufficientStockError(variant.sku, command.quantity, variant.stock)

        cart.update_item_quantity(command.item_id, command.quantity)
        revalidate_discounts(cart)
        repo.add(cart)
        return str(cart.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = _load_cart(repo, command, create=False)
        cart.remove_item(command.item_id)
        revalidate_discounts(cart)
        repo.add(cart)
        return str(cart.id)

    @handle(ApplyDiscount)
    def apply_discount(self, command):
        repo = current_domain.repository_for(Cart)
        cart = _load_cart(repo, command, create=False)
        if not cart.items:
            raise ValidationError({"cart": ["Cart is empty"]})

        kind = DiscountKind(command.kind)
        totals = cart.totals()
        if kind == DiscountKind.GIFT_CARD:
            amount = command.amount or 0.0
            if amount <= 0:
                raise ValidationError({"amount": ["Gift card amount must be positive"]})
            # The gift card may only cover what coupon and voucher leave
            payable = totals.subtotal - totals.discount_amount - totals.voucher_amount
            if amount > payable:
                raise ValidationError({"amount": ["Gift card amount cannot exceed cart total"]})
            redemption = get_discounts().validate(kind, command.code, amount)
        else:
            redemption = get_discounts().validate(kind, command.code, totals.subtotal)

        cart.apply_discount(redemption)
        repo.add(cart)
        logger.info("Discount applied", cart_id=str(cart.id), kind=kind.value, code=redemption.code)
        return str(cart.id)

    @handle(RemoveDiscount)
    def remove_discount(self, command):
        repo = current_domain.repository_for(Cart)
        cart = _load_cart(repo, command, create=False)

        if command.kind == "all":
            applied = cart.applied_discounts()
            if not applied:
                raise ValidationError({"kind": ["No discounts applied to cart"]})
            for redemption in applied:
                cart.remove_discount(redemption.kind)
        else:
            try:
                kind = DiscountKind(command.kind)
            except ValueError:
                raise ValidationError({"kind": [f"Unknown discount kind {command.kind}"]}) from None
            cart.remove_discount(kind)

        repo.add(cart)
        return str(cart.id)

    @handle(CheckOutCart)
    def check_out_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.check_out(command.order_id)
        repo.add(cart)
