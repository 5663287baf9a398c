"""Runtime configuration for the commerce core.

Values come from ``COMMERCE_*`` environment variables (or a ``.env`` file).
Use get_settings() everywhere; reset_settings() drops the cached instance so
tests can change the environment between cases.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CodAmountPolicy(Enum):
    TOLERANT = "tolerant"
    STRICT = "strict"


class CommerceSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="COMMERCE_", env_file=".env", extra="ignore")

    currency: str = "INR"

    # Payment gateway
    gateway_adapter: str = "fake"  # fake | razorpay
    gateway_key_id: str = "rzp_test_key"
    gateway_key_secret: str = "rzp_test_secret"
    gateway_base_url: str = "https://api.razorpay.com/v1"
    gateway_timeout_seconds: float = 10.0

    cod_amount_policy: CodAmountPolicy = CodAmountPolicy.TOLERANT

    # Orders
    delivery_eta_days: int = Field(default=7, ge=0)
    shipping_charge: float = Field(default=0.0, ge=0)
    order_tax_percent: float = Field(default=0.0, ge=0)

    # Carts and stock
    cart_ttl_days: int = Field(default=30, ge=1)
    stock_cas_retries: int = Field(default=3, ge=1)

    # Per-gram gold rate by karat, used to build the default rate snapshot
    gold_rates: dict[int, float] = Field(default_factory=lambda: {9: 5750.0, 14: 7670.0, 18: 9880.0})


_settings: CommerceSettings | None = None


def get_settings() -> CommerceSettings:
    """Return the active settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = CommerceSettings()
    return _settings


def set_settings(settings: CommerceSettings) -> None:
    """Override the active settings (useful for tests)."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    global _settings
    _settings = None
