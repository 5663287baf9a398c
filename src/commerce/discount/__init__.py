"""Discount facade factory.

get_discounts() / set_discounts() swap the facade the cart and checkout use,
e.g. to plug in a consumer double in tests.
"""

from commerce.discount.facade import DiscountFacade

_current_discounts: DiscountFacade | None = None


def get_discounts() -> DiscountFacade:
    global _current_discounts
    if _current_discounts is None:
        _current_discounts = DiscountFacade()
    return _current_discounts


def set_discounts(discounts: DiscountFacade) -> None:
    global _current_discounts
    _current_discounts = discounts


def reset_discounts() -> None:
    global _current_discounts
    _current_discounts = None
