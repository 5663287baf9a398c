import json
from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from commerce.cart.management import AddToCart, ApplyDiscount
from commerce.catalogue.management import AddVariant, RegisterProduct
from commerce.discount.issuance import IssueCoupon, IssueGiftCard, IssueVoucher
from commerce.gateway import set_gateway
from commerce.gateway.fake_adapter import FakeGateway
from commerce.notification import set_notifier
from commerce.notification.fake_adapter import FakeNotifier
from commerce.order.placement import PlaceOrder
from commerce.settings import get_settings

SHIPPING_ADDRESS = {
    "name": "Asha Rao",
    "line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "postal_code": "560001",
    "country": "India",
    "phone": "9800000000",
}


@pytest.fixture()
def address():
    return dict(SHIPPING_ADDRESS)


@pytest.fixture(scope="session")
def commerce_bed():
    from commerce.domain import commerce

    bed = DomainFixture(commerce)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(commerce_bed):
    with commerce_bed.domain_context():
        yield


def process(command):
    return current_domain.process(command, asynchronous=False)


@pytest.fixture()
def gateway():
    fake = FakeGateway(key_secret=get_settings().gateway_key_secret)
    set_gateway(fake)
    return fake


@pytest.fixture()
def notifier():
    fake = FakeNotifier()
    set_notifier(fake)
    return fake


@pytest.fixture()
def ring():
    """A solitaire ring with an 18k variant (stock 5) and a 14k variant (stock 2)."""
    product_id = process(
        RegisterProduct(
            name="Solitaire Ring",
            product_code="RNG-001",
            image_url="https://cdn.example.com/rng-001.jpg",
            net_weight=2.0,
            solitaire_weight=0.5,
        )
    )
    process(AddVariant(product_id=product_id, karat=18, stone_type="regular_diamond", sku="RNG-001-18K", stock=5))
    process(AddVariant(product_id=product_id, karat=14, stone_type="regular_diamond", sku="RNG-001-14K", stock=2))
    return product_id


@pytest.fixture()
def add_to_cart():
    def _add(product_id, sku="RNG-001-18K", karat=18, quantity=1, user_id="user-001", session_id=None):
        return process(
            AddToCart(
                user_id=user_id,
                session_id=session_id,
                product_id=product_id,
                sku=sku,
                karat=karat,
                quantity=quantity,
            )
        )

    return _add


@pytest.fixture()
def coupon():
    process(IssueCoupon(code="SPARKLE10", discount_type="percentage", value=10, max_discount_amount=2000))
    return "SPARKLE10"


@pytest.fixture()
def voucher():
    process(
        IssueVoucher(
            code="WELCOME1000",
            amount=1000,
            valid_upto=datetime.now(UTC) + timedelta(days=30),
        )
    )
    return "WELCOME1000"


@pytest.fixture()
def gift_card():
    process(IssueGiftCard(code="GIFT-5000", amount=5000, valid_upto=datetime.now(UTC) + timedelta(days=365)))
    return "GIFT-5000"


@pytest.fixture()
def apply_discount():
    def _apply(kind, code, amount=None, user_id="user-001"):
        return process(ApplyDiscount(user_id=user_id, kind=kind, code=code, amount=amount))

    return _apply


@pytest.fixture()
def place_order():
    """Persist an order directly from a snapshot, bypassing checkout."""

    def _place(total=500.0, payment_method="gateway", user_id="user-001", email="asha@example.com", items=None):
        items = items or [
            {
                "product_id": "prod-snapshot",
                "product_name": "Snapshot Pendant",
                "product_image": None,
                "sku": "PND-001-18K",
                "karat": 18,
                "stone_type": "regular_diamond",
                "price_at_purchase": total,
                "quantity": 1,
                "gross_weight": 1.2,
            }
        ]
        return process(
            PlaceOrder(
                order_number=f"ORD{int(datetime.now(UTC).timestamp() * 1000)}001",
                user_id=user_id,
                customer_email=email,
                items=json.dumps(items),
                shipping_address=json.dumps(SHIPPING_ADDRESS),
                billing_address=json.dumps(SHIPPING_ADDRESS),
                pricing=json.dumps({"subtotal": total, "total": total}),
                payment_method=payment_method,
            )
        )

    return _place
