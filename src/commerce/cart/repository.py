from commerce.cart.cart import Cart, CartStatus
from commerce.domain import commerce


@commerce.repository(part_of=Cart)
class CartRepository:
    def active_for(self, user_id=None, session_id=None) -> Cart | None:
        """The owner's active cart, preferring the customer over the guest session."""
        if user_id:
            carts = self._dao.query.filter(user_id=str(user_id), status=CartStatus.ACTIVE.value).all().items
        elif session_id:
            carts = self._dao.query.filter(session_id=session_id, status=CartStatus.ACTIVE.value).all().items
        else:
            return None
        return carts[0] if carts else None

    def active_carts(self) -> list[Cart]:
        return self._dao.query.filter(status=CartStatus.ACTIVE.value).all().items
