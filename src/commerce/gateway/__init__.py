"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- RazorpayGateway when ``COMMERCE_GATEWAY_ADAPTER=razorpay``
"""

from commerce.gateway.fake_adapter import FakeGateway
from commerce.gateway.port import PaymentGateway
from commerce.settings import get_settings

_current_gateway: PaymentGateway | None = None


def _build_gateway() -> PaymentGateway:
    settings = get_settings()
    if settings.gateway_adapter == "razorpay":
        from commerce.gateway.razorpay_adapter import RazorpayGateway

        return RazorpayGateway(
            key_id=settings.gateway_key_id,
            key_secret=settings.gateway_key_secret,
            base_url=settings.gateway_base_url,
            timeout=settings.gateway_timeout_seconds,
        )
    if settings.gateway_adapter == "fake":
        return FakeGateway(key_secret=settings.gateway_key_secret)
    raise ValueError(f"Unknown gateway adapter: {settings.gateway_adapter}")


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, built from settings on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to the configured gateway."""
    global _current_gateway
    _current_gateway = None
