"""Stock ledger: per-SKU reserve/release over the catalogue.

``reserve`` is a single conditional decrement and is the only safe primitive
under concurrent checkouts. Reserving several lines is not atomic across
SKUs, so ``reserve_all`` records each success and, when a later line fails,
releases every earlier reservation of the same attempt before reporting the
conflict.
"""

from dataclasses import dataclass

import structlog

from commerce.catalogue import get_catalogue
from commerce.catalogue.port import Catalogue
from commerce.errors import ConflictError, InternalInconsistencyError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    product_id: str
    sku: str
    quantity: int


@dataclass(frozen=True)
class Reservation:
    line: StockLine
    stock_after: int


class StockLedger:
    def __init__(self, catalogue: Catalogue | None = None):
        self._catalogue = catalogue

    @property
    def catalogue(self) -> Catalogue:
        return self._catalogue or get_catalogue()

    def check_available(self, sku: str, quantity: int, product_id: str | None = None) -> bool:
        variant = self.catalogue.get_variant(sku, product_id=product_id)
        if variant is None or not variant.purchasable:
            return False
        return variant.stock >= quantity

    def reserve(self, product_id: str, sku: str, quantity: int) -> int:
        new_stock = self.catalogue.conditional_decrement_stock(product_id, sku, quantity)
        logger.info("Stock reserved", product_id=product_id, sku=sku, quantity=quantity, stock=new_stock)
        return new_stock

    def release(self, product_id: str, sku: str, quantity: int) -> int:
        new_stock = self.catalogue.increment_stock(product_id, sku, quantity)
        logger.info("Stock released", product_id=product_id, sku=sku, quantity=quantity, stock=new_stock)
        return new_stock

    def reserve_all(self, lines: list[StockLine]) -> list[Reservation]:
        """Reserve every line or none of them.

        Raises ConflictError after compensating when any line fails, and
        InternalInconsistencyError when a compensating release fails too.
        """
        reservations: list[Reservation] = []
        for line in lines:
            try:
                stock_after = self.reserve(line.product_id, line.sku, line.quantity)
            except Exception as exc:
                logger.warning(
                    "Reservation failed, releasing earlier lines",
                    sku=line.sku,
                    quantity=line.quantity,
                    reserved_lines=len(reservations),
                    error=str(exc),
                )
                self.release_all([r.line for r in reversed(reservations)])
                if isinstance(exc, ConflictError):
                    raise
                raise ConflictError(
                    f"Could not reserve {line.quantity} x {line.sku}",
                    sku=line.sku,
                    quantity=line.quantity,
                ) from exc
            reservations.append(Reservation(line=line, stock_after=stock_after))
        return reservations

    def release_all(self, lines: list[StockLine]) -> None:
        """Release each line; collect failures and surface them together.

        Each failure records the stock the catalogue shows now and the stock
        it should show once the line is handed back.
        """
        failures = []
        for line in lines:
            try:
                self.release(line.product_id, line.sku, line.quantity)
            except Exception as exc:
                actual = self._current_stock(line)
                failures.append(
                    {
                        "product_id": line.product_id,
                        "sku": line.sku,
                        "quantity": line.quantity,
                        "actual_stock": actual,
                        "expected_stock": None if actual is None else actual + line.quantity,
                        "error": str(exc),
                    }
                )

        if failures:
            logger.error("Stock release failed; manual correction required", failures=failures)
            raise InternalInconsistencyError("Stock could not be released for every line", failures=failures)

    def _current_stock(self, line: StockLine) -> int | None:
        try:
            variant = self.catalogue.get_variant(line.sku, product_id=line.product_id)
        except Exception as exc:
            logger.error("Stock unreadable while reporting a failed release", sku=line.sku, error=str(exc))
            return None
        return None if variant is None else variant.stock
