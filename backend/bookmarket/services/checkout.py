"""Turns a buyer's cart into a completed order.

The whole sequence (reading the cart, the order row, one line per claimed
listing, availability flips, removing the entries it read) runs inside a
single store transaction. A
listing is claimed with a conditional update, so when two buyers check out
the same book only one of them gets an order line for it; the other sees
it reported as unfulfilled.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from bookmarket.models.cart import CartEntry
from bookmarket.models.order import (
    Order,
    OrderLine,
    OrderStatus,
    UnfulfilledEntry,
    UnfulfilledReason,
)
from bookmarket.services.storage import RecordStore
from bookmarket.utils.logger import logger


class CheckoutError(Exception):
    pass


class EmptyCartError(CheckoutError):
    def __init__(self):
        super().__init__("Cart is empty")


class NothingToPurchaseError(CheckoutError):
    def __init__(self, unfulfilled: List[UnfulfilledEntry]):
        super().__init__("None of the items in your cart are available anymore")
        self.unfulfilled = unfulfilled


@dataclass
class CheckoutResult:
    order: Order
    lines: List[OrderLine] = field(default_factory=list)
    unfulfilled: List[UnfulfilledEntry] = field(default_factory=list)


class _Abort(Exception):
    """Internal: unwinds the transaction when no line could be created."""

    def __init__(self, unfulfilled: List[UnfulfilledEntry]):
        super().__init__()
        self.unfulfilled = unfulfilled


class CheckoutService:

    def __init__(self, store: RecordStore):
        self.store = store

    def checkout(self, buyer_id: int, total: Decimal) -> CheckoutResult:
        result: Optional[CheckoutResult] = None
        try:
            with self.store.transaction():
                cart = self.store.get_cart_entries(buyer_id)
                if cart:
                    result = self._purchase(buyer_id, total, cart)
        except _Abort as abort:
            logger.warning(f"Checkout for buyer={buyer_id} claimed nothing; rolled back")
            raise NothingToPurchaseError(abort.unfulfilled)

        if result is None:
            raise EmptyCartError()

        order = result.order
        for item in result.unfulfilled:
            logger.warning(
                f"Checkout order={order.id} skipped listing={item.listing_id} reason={item.reason.value}"
            )

        line_sum = sum((line.price for line in result.lines), Decimal("0.00"))
        if total < line_sum:
            logger.warning(
                f"Checkout order={order.id} total {total} is below the sum of line prices {line_sum}"
            )

        logger.info(f"Order {order.id} created for buyer={buyer_id} lines={len(result.lines)} total={total}")
        return result

    def _purchase(self, buyer_id: int, total: Decimal, cart: List[CartEntry]) -> CheckoutResult:
        """Runs inside the caller's transaction; raises _Abort if nothing was claimed."""
        order = self.store.create_order(buyer_id, total, OrderStatus.COMPLETED)
        lines: List[OrderLine] = []
        unfulfilled: List[UnfulfilledEntry] = []

        for entry in cart:
            listing = self.store.get_listing(entry.listing_id)
            if listing is None:
                unfulfilled.append(UnfulfilledEntry(
                    listing_id=entry.listing_id, reason=UnfulfilledReason.NOT_FOUND
                ))
                continue
            if not self.store.mark_listing_sold(listing.id):
                unfulfilled.append(UnfulfilledEntry(
                    listing_id=listing.id, reason=UnfulfilledReason.UNAVAILABLE
                ))
                continue
            lines.append(self.store.create_order_line(order.id, listing.id, listing.price))

        if not lines:
            raise _Abort(unfulfilled)

        # Only the entries read above; anything carted meanwhile stays for next time.
        self.store.clear_cart(buyer_id, [entry.listing_id for entry in cart])
        return CheckoutResult(order=order, lines=lines, unfulfilled=unfulfilled)
