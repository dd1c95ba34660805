from bookmarket.db_models.user import User
from bookmarket.db_models.listing import Listing
from bookmarket.db_models.cart import CartEntry
from bookmarket.db_models.order import Order, OrderLine
from bookmarket.db_models.message import Message

__all__ = [
    "User",
    "Listing",
    "CartEntry",
    "Order",
    "OrderLine",
    "Message",
]
