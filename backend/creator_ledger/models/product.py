"""Catalog models the ledger reads to attribute earnings."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from creator_ledger.database import Base


class Product(Base):
    """Digital product sold (or given away) by a creator."""

    __tablename__ = "products"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Product info
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sales_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Ownership
    seller_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=True)
    seller_role: Mapped[str | None] = mapped_column(String(50), nullable=True)  # "freelancer", "teacher", "admin"

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Indexes
    __table_args__ = (
        Index("idx_product_seller_id", "seller_id"),
    )

    @property
    def is_free(self) -> bool:
        return self.price_cents == 0

    def __repr__(self) -> str:
        return f"<Product(uuid={self.uuid}, name={self.name}, seller_id={self.seller_id})>"


class Course(Base):
    """Course taught by a teacher. Courses without an instructor are platform content."""

    __tablename__ = "courses"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    instructor_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_course_instructor_id", "instructor_id"),
    )

    def __repr__(self) -> str:
        return f"<Course(uuid={self.uuid}, title={self.title}, instructor_id={self.instructor_id})>"
