"""Razorpay gateway adapter over its REST API.

Uses httpx with HTTP basic auth (key id / key secret) and the configured
timeout. Transport errors, timeouts and non-2xx responses are all reported
as ExternalGatewayError.
"""

from datetime import UTC, datetime

import httpx
import structlog

from commerce.errors import ExternalGatewayError
from commerce.gateway.port import GatewayOrder, GatewayPayment, GatewayRefund, PaymentGateway
from commerce.gateway.signature import verify

logger = structlog.get_logger(__name__)


class RazorpayGateway(PaymentGateway):
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self._client = client or httpx.Client(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
        )

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Gateway rejected request",
                path=path,
                status_code=exc.response.status_code,
                body=exc.response.text[:500],
            )
            raise ExternalGatewayError(
                "Payment gateway rejected the request", status_code=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Gateway unreachable", path=path, error=str(exc))
            raise ExternalGatewayError("Payment gateway unreachable") from exc
        return response.json()

    def create_order(self, order_id: str, amount_minor: int, currency: str, metadata: dict) -> GatewayOrder:
        data = self._request(
            "POST",
            "/orders",
            json={
                "amount": amount_minor,
                "currency": currency,
                "receipt": str(order_id),
                "notes": {k: str(v) for k, v in (metadata or {}).items()},
            },
        )
        return GatewayOrder(
            id=data["id"],
            amount=int(data["amount"]),
            currency=data.get("currency", currency),
            status=data.get("status", "created"),
        )

    def verify_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        return verify(gateway_order_id, gateway_payment_id, signature, self.key_secret)

    def fetch_payment(self, gateway_payment_id: str) -> GatewayPayment:
        data = self._request("GET", f"/payments/{gateway_payment_id}")
        created_at = data.get("created_at")
        return GatewayPayment(
            id=data["id"],
            order_id=data.get("order_id"),
            status=data["status"],
            amount=int(data["amount"]),
            method=data.get("method"),
            captured_at=datetime.fromtimestamp(created_at, UTC) if data.get("captured") and created_at else None,
        )

    def refund(self, gateway_payment_id: str, amount_minor: int) -> GatewayRefund:
        data = self._request("POST", f"/payments/{gateway_payment_id}/refund", json={"amount": amount_minor})
        return GatewayRefund(
            id=data["id"],
            status=data.get("status", "pending"),
            amount=int(data.get("amount", amount_minor)),
            raw=data,
        )

    def close(self) -> None:
        self._client.close()
