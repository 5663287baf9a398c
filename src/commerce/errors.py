"""Error taxonomy for the commerce core.

Validation and not-found failures reuse Protean's own exceptions
(``ValidationError`` and ``ObjectNotFoundError``) so that command handlers,
repositories and the FastAPI exception handlers treat them uniformly. The
classes below cover the failures Protean has no vocabulary for.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError

NotFoundError = ObjectNotFoundError

__all__ = [
    "ConflictError",
    "DiscountNotFoundError",
    "ExternalGatewayError",
    "InsufficientStockError",
    "InternalInconsistencyError",
    "InvalidTransitionError",
    "NotFoundError",
    "ValidationError",
]


class CommerceError(Exception):
    """Base class for commerce errors carrying a structured payload."""

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class ConflictError(CommerceError):
    """The request clashes with current state (stock, status, prior capture)."""


class InsufficientStockError(ConflictError):
    def __init__(self, sku: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {sku}: requested {requested}, available {available}",
            sku=sku,
            requested=requested,
            available=available,
        )
        self.sku = sku
        self.requested = requested
        self.available = available


class InvalidTransitionError(ConflictError):
    def __init__(self, current: str, target: str, entity: str = "order"):
        super().__init__(
            f"Cannot transition {entity} from {current} to {target}",
            current=current,
            target=target,
        )
        self.current = current
        self.target = target


class DiscountNotFoundError(ObjectNotFoundError):
    """No discount of the asked kind exists with the given code."""

    def __init__(self, kind: str, code: str):
        super().__init__(f"{kind} `{code}` not found")
        self.kind = kind
        self.code = code


class ExternalGatewayError(CommerceError):
    """Gateway rejected, could not be reached, or returned untrustworthy data."""


class InternalInconsistencyError(CommerceError):
    """A partially applied operation could not be fully compensated.

    ``details`` holds what an operator needs to reconcile by hand: order id,
    SKU, expected vs. actual stock, and the outcome of each compensation.
    """
