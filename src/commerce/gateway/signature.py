"""Checkout signature: hex HMAC-SHA256 of ``"{order_id}|{payment_id}"``."""

import hashlib
import hmac


def sign(gateway_order_id: str, gateway_payment_id: str, secret: str) -> str:
    message = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify(gateway_order_id: str, gateway_payment_id: str, signature: str, secret: str) -> bool:
    if not signature:
        return False
    expected = sign(gateway_order_id, gateway_payment_id, secret)
    return hmac.compare_digest(expected, signature)
