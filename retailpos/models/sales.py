from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from retailpos.db.base import Base


class Sale(Base):
    __tablename__ = "sales"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_received: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    change: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    cashier: Mapped[str] = mapped_column(String(100), nullable=False)  # username
    store_location: Mapped[str] = mapped_column(String(255), nullable=False)
    order_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_sales_date", "date"),
        Index("ix_sales_cashier_date", "cashier", "date"),
        # At most one sale per completed order.
        Index(
            "ux_sales_order_id",
            "order_id",
            unique=True,
            postgresql_where=order_id.isnot(None),
            sqlite_where=order_id.isnot(None),
        ),
    )


class SaleItem(Base):
    __tablename__ = "sale_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    sale_id: Mapped[str] = mapped_column(String(36), ForeignKey("sales.id", ondelete="CASCADE"), index=True)
    # Plain reference: the product may be deleted after the sale.
    product_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
