import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from retailpos.core.config import settings
from retailpos.core.dates import apply_date_range, utcnow, validate_date_range
from retailpos.core.errors import ForbiddenError, NotFoundError, ValidationError
from retailpos.core.id_utils import generate_record_id
from retailpos.core.money import ZERO_MONEY, money_out, to_money
from retailpos.models.product import Product
from retailpos.models.sales import Sale, SaleItem
from retailpos.schemas.sales import SaleItemIn, SaleItemOut, SaleOut
from retailpos.services import catalog_service
from retailpos.services.activity_service import log_activity

logger = logging.getLogger(__name__)

PRICE_OVERRIDE_MESSAGE = "Selling at a price other than the catalog price requires the prices.manage permission"


@dataclass(frozen=True)
class SaleLine:
    product_id: str
    quantity: int
    price: Decimal
    purchase_price: Decimal | None = None


def ensure_catalog_prices(items, catalog_prices: dict[str, Decimal]) -> None:
    """Refuse any item whose explicit price differs from the catalog price."""
    for item in items:
        if item.price is None:
            continue
        if to_money(item.price) != to_money(catalog_prices[item.product_id]):
            raise ForbiddenError(PRICE_OVERRIDE_MESSAGE)


def compute_totals(
    lines: list[SaleLine],
    discount: Decimal,
    payment_received: Decimal,
) -> tuple[Decimal, Decimal, Decimal, Decimal]:
    """Return ``(subtotal, discount, total, change)`` for the given lines."""
    subtotal = ZERO_MONEY
    for line in lines:
        subtotal += to_money(line.price) * line.quantity
    subtotal = to_money(subtotal)
    discount = to_money(discount)
    if discount > subtotal:
        raise ValidationError("Discount cannot exceed the subtotal")
    total = to_money(subtotal - discount)
    payment_received = to_money(payment_received)
    if payment_received < total:
        raise ValidationError("Payment received is less than the sale total")
    change = max(ZERO_MONEY, to_money(payment_received - total))
    return subtotal, discount, total, change


def _lock_products(db: Session, product_ids: set[str]) -> dict[str, Product]:
    rows = db.execute(
        select(Product).where(Product.id.in_(product_ids)).order_by(Product.id).with_for_update()
    ).scalars().all()
    return {product.id: product for product in rows}


def ensure_stock(db: Session, quantities: dict[str, int]) -> dict[str, Product]:
    """Lock the products and check each has at least the requested quantity."""
    products = _lock_products(db, set(quantities))
    for product_id, requested in quantities.items():
        product = products.get(product_id)
        if not product:
            raise ValidationError(f"Product not found: {product_id}")
        if product.quantity < requested:
            raise ValidationError(
                f"Insufficient stock for {product.name}: requested {requested}, available {product.quantity}"
            )
    return products


def write_sale(
    db: Session,
    *,
    lines: list[SaleLine],
    products: dict[str, Product],
    discount: Decimal,
    payment_received: Decimal,
    cashier: str,
    store_location: str,
    order_id: str | None = None,
    stock_reason: str = "Sale",
) -> Sale:
    """Persist a sale with its items and decrement stock once per line.

    Callers must have validated stock with ``ensure_stock`` in the same
    transaction.
    """
    subtotal, discount, total, change = compute_totals(lines, discount, payment_received)
    sale = Sale(
        id=generate_record_id(),
        subtotal=subtotal,
        discount=discount,
        total=total,
        payment_received=to_money(payment_received),
        change=change,
        cashier=cashier,
        store_location=store_location,
        order_id=order_id,
        date=utcnow(),
    )
    db.add(sale)

    for position, line in enumerate(lines):
        price = to_money(line.price)
        db.add(
            SaleItem(
                id=generate_record_id(),
                sale_id=sale.id,
                product_id=line.product_id,
                position=position,
                quantity=line.quantity,
                price=price,
                purchase_price=to_money(line.purchase_price) if line.purchase_price is not None else None,
                line_total=to_money(price * line.quantity),
            )
        )
        catalog_service.adjust_quantity(
            db,
            line.product_id,
            line.quantity,
            reason=stock_reason,
            reference_id=sale.id,
            product=products[line.product_id],
        )
    return sale


def record_sale(
    db: Session,
    *,
    items: list[SaleItemIn],
    discount: Decimal,
    payment_received: Decimal,
    cashier: str,
    actor_id: str | None = None,
    store_location: str | None = None,
    allow_price_override: bool = False,
) -> Sale:
    if not items:
        raise ValidationError("A sale needs at least one item")

    quantities: dict[str, int] = {}
    for item in items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
    products = ensure_stock(db, quantities)
    if not allow_price_override:
        ensure_catalog_prices(items, {product_id: product.price for product_id, product in products.items()})

    lines = [
        SaleLine(
            product_id=item.product_id,
            quantity=item.quantity,
            price=to_money(item.price if item.price is not None else products[item.product_id].price),
            purchase_price=products[item.product_id].purchase_price,
        )
        for item in items
    ]
    sale = write_sale(
        db,
        lines=lines,
        products=products,
        discount=discount,
        payment_received=payment_received,
        cashier=cashier,
        store_location=store_location or settings.store_location,
    )
    log_activity(
        db,
        user_id=actor_id,
        action="sale.create",
        details=f"Recorded sale of {float(sale.total):.2f}",
        target_type="sale",
        target_id=sale.id,
        metadata_json={"items_count": len(lines), "total": float(sale.total)},
    )
    logger.info("Recorded sale %s total=%s cashier=%s", sale.id, sale.total, cashier)
    return sale


def get_sale(db: Session, sale_id: str) -> Sale:
    sale = db.execute(select(Sale).where(Sale.id == sale_id)).scalar_one_or_none()
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def sale_items(db: Session, sale_ids: list[str]) -> dict[str, list[SaleItem]]:
    grouped: dict[str, list[SaleItem]] = {sale_id: [] for sale_id in sale_ids}
    if not sale_ids:
        return grouped
    rows = db.execute(
        select(SaleItem)
        .where(SaleItem.sale_id.in_(sale_ids))
        .order_by(SaleItem.sale_id, SaleItem.position)
    ).scalars().all()
    for row in rows:
        grouped.setdefault(row.sale_id, []).append(row)
    return grouped


def _filtered_sales(
    *,
    start_date: date | None,
    end_date: date | None,
    cashier: str | None,
    search: str | None,
):
    stmt = select(Sale)
    if cashier:
        stmt = stmt.where(Sale.cashier == cashier)
    stmt = apply_date_range(stmt, Sale.date, start_date, end_date)
    if search:
        pattern = f"%{search.strip().lower()}%"
        matching_products = (
            select(SaleItem.sale_id)
            .join(Product, Product.id == SaleItem.product_id)
            .where(func.lower(Product.name).like(pattern))
        )
        stmt = stmt.where(
            or_(
                func.lower(Sale.id).like(pattern),
                func.lower(Sale.cashier).like(pattern),
                Sale.id.in_(matching_products),
            )
        )
    return stmt


def list_sales(
    db: Session,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    cashier: str | None = None,
    search: str | None = None,
    limit: int | None = 50,
    offset: int = 0,
) -> tuple[int, list[Sale]]:
    validate_date_range(start_date, end_date)
    stmt = _filtered_sales(start_date=start_date, end_date=end_date, cashier=cashier, search=search)
    total = int(db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one())
    data_stmt = stmt.order_by(Sale.date.desc(), Sale.id.desc()).offset(offset)
    if limit is not None:
        data_stmt = data_stmt.limit(limit)
    rows = db.execute(data_stmt).scalars().all()
    return total, list(rows)


def sales_by_user(db: Session, username: str) -> list[Sale]:
    _, rows = list_sales(db, cashier=username, limit=None)
    return rows


def sales_by_date_range(db: Session, start_date: date, end_date: date) -> list[Sale]:
    _, rows = list_sales(db, start_date=start_date, end_date=end_date, limit=None)
    return rows


def clear_sales(db: Session, *, actor_id: str | None = None) -> int:
    """Delete every sale and its items. Stock levels are not restored."""
    count = int(db.execute(select(func.count(Sale.id))).scalar_one())
    db.execute(delete(SaleItem))
    db.execute(delete(Sale))
    log_activity(
        db,
        user_id=actor_id,
        action="sales.clear",
        details=f"Cleared {count} sale(s)",
        target_type="sale",
        metadata_json={"deleted": count},
    )
    logger.warning("Cleared %s sales", count)
    return count


def sales_out(db: Session, sales: list[Sale]) -> list[SaleOut]:
    items_by_sale = sale_items(db, [sale.id for sale in sales])
    names = catalog_service.product_names(
        db, [item.product_id for items in items_by_sale.values() for item in items]
    )
    return [
        SaleOut(
            id=sale.id,
            subtotal=money_out(sale.subtotal),
            discount=money_out(sale.discount),
            total=money_out(sale.total),
            payment_received=money_out(sale.payment_received),
            change=money_out(sale.change),
            cashier=sale.cashier,
            store_location=sale.store_location,
            order_id=sale.order_id,
            date=sale.date,
            items=[
                SaleItemOut(
                    product_id=item.product_id,
                    product_name=names.get(item.product_id, catalog_service.UNKNOWN_PRODUCT),
                    quantity=item.quantity,
                    price=money_out(item.price),
                    purchase_price=money_out(item.purchase_price) if item.purchase_price is not None else None,
                    line_total=money_out(item.line_total),
                )
                for item in items_by_sale.get(sale.id, [])
            ],
        )
        for sale in sales
    ]
