from sqlalchemy import Column, String, DateTime, Numeric, Integer, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from bookmarket.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    buyer_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    total = Column(Numeric(10, 2), nullable=False)
    # 'pending', 'completed', 'cancelled'
    status = Column(String(20), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    lines = relationship("OrderLine", back_populates="order", cascade="all, delete-orphan")


class OrderLine(Base):
    """A sold listing inside an order.

    listing_id is deliberately not a foreign key: order history must survive a
    seller deleting the listing afterwards.
    """

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    listing_id = Column(Integer, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="lines")
