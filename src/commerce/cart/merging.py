"""Guest cart merge: command and handler.

When a guest logs in, their session cart is folded into the customer's
cart. Quantities are added per product/karat/SKU and clamped to current
stock; lines whose variant vanished or became unavailable are skipped.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.cart.management import revalidate_discounts
from commerce.catalogue import get_catalogue
from commerce.domain import commerce

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Cart")
class MergeGuestCart:
    session_id = String(required=True, max_length=255)
    user_id = Identifier(required=True)


@commerce.command_handler(part_of=Cart)
class MergeGuestCartHandler:
    @handle(MergeGuestCart)
    def merge_guest_cart(self, command):
        repo = current_domain.repository_for(Cart)
        guest_cart = repo.active_for(session_id=command.session_id)
        if guest_cart is None or guest_cart.user_id:
            logger.info("No guest cart to merge", session_id=command.session_id)
            return None

        cart = repo.active_for(user_id=command.user_id)
        if cart is None:
            cart = Cart.create(user_id=command.user_id)

        merged = 0
        for guest_item in guest_cart.items:
            variant = get_catalogue().get_variant(guest_item.sku, product_id=str(guest_item.product_id))
            if variant is None or not variant.purchasable:
                logger.info("Skipping unavailable guest cart line", sku=guest_item.sku)
                continue

            line = cart.line_for(guest_item.product_id, guest_item.karat, guest_item.sku)
            current = line.quantity if line else 0
            allowed = min(current + guest_item.quantity, variant.stock)
            if allowed <= current:
                continue

            cart.add_item(
                product_id=variant.product_id,
                sku=variant.sku,
                karat=variant.karat,
                stone_type=variant.stone_type,
                unit_price=variant.price,
                quantity=allowed - current,
                selected_image=guest_item.selected_image,
            )
            merged += 1

        cart.record_merge(guest_cart, merged)
        revalidate_discounts(cart)
        repo.add(guest_cart)
        repo.add(cart)

        logger.info(
            "Guest cart merged",
            cart_id=str(cart.id),
            guest_cart_id=str(guest_cart.id),
            items_merged=merged,
        )
        return str(cart.id)
