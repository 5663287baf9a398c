"""Order placement: command and handler.

Placement only persists the frozen snapshot built by checkout; stock and
discounts have already been taken by the time this command is processed.
"""

import json

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.order import Order, PaymentMethod


@commerce.command(part_of="Order")
class PlaceOrder:
    order_number = String(required=True, max_length=32)
    user_id = Identifier(required=True)
    customer_email = String(max_length=255)
    items = Text(required=True)  # JSON: list of item snapshot dicts
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text(required=True)  # JSON: address dict
    pricing = Text(required=True)  # JSON: OrderPricing fields
    discounts = Text()  # JSON: {"coupon": {...}, ...}
    payment_method = String(required=True, choices=PaymentMethod)
    notes = String(max_length=1000)


@commerce.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        order = Order.place(
            user_id=command.user_id,
            items_data=json.loads(command.items),
            shipping_address=json.loads(command.shipping_address),
            billing_address=json.loads(command.billing_address),
            pricing=json.loads(command.pricing),
            payment_method=command.payment_method,
            discounts=json.loads(command.discounts) if command.discounts else None,
            customer_email=command.customer_email,
            notes=command.notes,
            order_number=command.order_number,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)
