"""Order models owned by the checkout flow; the ledger locks and reads them."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from creator_ledger.database import Base


class Order(Base):
    """Customer order."""

    __tablename__ = "orders"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Order info
    buyer_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")  # "pending", "paid", "delivered", "cancelled"

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    items: Mapped[list["OrderItem"]] = relationship("OrderItem", back_populates="order")

    __table_args__ = (
        Index("idx_order_buyer_id", "buyer_id"),
        Index("idx_order_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Order(uuid={self.uuid}, status={self.status})>"


class OrderItem(Base):
    """Line item of an order: a product or a course."""

    __tablename__ = "order_items"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.uuid"), nullable=False)
    product_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("products.uuid"), nullable=True)
    course_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("courses.uuid"), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items", foreign_keys=[order_id])

    __table_args__ = (
        Index("idx_order_item_order_id", "order_id"),
    )

    def __repr__(self) -> str:
        return f"<OrderItem(uuid={self.uuid}, order_id={self.order_id}, total_price_cents={self.total_price_cents})>"
