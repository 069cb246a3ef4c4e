"""Customer orders and their conversion into sales.

Status changes follow ``ALLOWED_ORDER_TRANSITIONS``. Reaching ``completed``
always goes through ``complete_order``, which records exactly one sale and
decrements stock once, however many times it is called.
"""
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from retailpos.core.config import settings
from retailpos.core.dates import apply_date_range, utcnow, validate_date_range
from retailpos.core.errors import NotFoundError, ValidationError
from retailpos.core.id_utils import generate_record_id
from retailpos.core.money import ZERO_MONEY, money_out, to_money
from retailpos.models.order import Order, OrderItem
from retailpos.schemas.order import OrderCreate, OrderItemIn, OrderItemOut, OrderOut, OrderUpdate
from retailpos.services import catalog_service, sales_service
from retailpos.services.activity_service import log_activity

logger = logging.getLogger(__name__)

ALLOWED_ORDER_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"processing", "completed", "cancelled"},
    "processing": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}
TERMINAL_STATUSES = {"completed", "cancelled"}
CUSTOMER_FIELDS = ("customer_name", "contact_number", "email", "delivery_address", "payment_method")


def ensure_transition_allowed(current_status: str, next_status: str) -> None:
    if current_status == next_status:
        return
    if next_status not in ALLOWED_ORDER_TRANSITIONS.get(current_status, set()):
        raise ValidationError(f"Cannot transition order from '{current_status}' to '{next_status}'")


def balance_due(order: Order) -> Decimal:
    return max(ZERO_MONEY, to_money(order.final_amount) - to_money(order.advance_payment))


def _price_items(items: list[OrderItemIn], discount: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    subtotal = to_money(sum((to_money(item.price) * item.quantity for item in items), ZERO_MONEY))
    discount = to_money(discount)
    if discount > subtotal:
        raise ValidationError("Discount cannot exceed the subtotal")
    return subtotal, discount, to_money(subtotal - discount)


def _check_items(db: Session, items: list[OrderItemIn], *, allow_price_override: bool) -> None:
    product_ids = {item.product_id for item in items}
    prices = catalog_service.product_prices(db, list(product_ids))
    missing = sorted(product_ids - set(prices))
    if missing:
        raise ValidationError(f"Product not found: {missing[0]}")
    if not allow_price_override:
        sales_service.ensure_catalog_prices(items, prices)


def _replace_items(db: Session, order: Order, items: list[OrderItemIn]) -> None:
    db.execute(delete(OrderItem).where(OrderItem.order_id == order.id))
    for position, item in enumerate(items):
        price = to_money(item.price)
        db.add(
            OrderItem(
                id=generate_record_id(),
                order_id=order.id,
                product_id=item.product_id,
                position=position,
                quantity=item.quantity,
                price=price,
                line_total=to_money(price * item.quantity),
            )
        )


def get_order(db: Session, order_id: str, *, for_update: bool = False) -> Order:
    stmt = select(Order).where(Order.id == order_id)
    if for_update:
        stmt = stmt.with_for_update()
    order = db.execute(stmt).scalar_one_or_none()
    if not order:
        raise NotFoundError("Order not found")
    return order


def order_items(db: Session, order_ids: list[str]) -> dict[str, list[OrderItem]]:
    grouped: dict[str, list[OrderItem]] = {order_id: [] for order_id in order_ids}
    if not order_ids:
        return grouped
    rows = db.execute(
        select(OrderItem)
        .where(OrderItem.order_id.in_(order_ids))
        .order_by(OrderItem.order_id, OrderItem.position)
    ).scalars().all()
    for row in rows:
        grouped.setdefault(row.order_id, []).append(row)
    return grouped


def create_order(
    db: Session,
    payload: OrderCreate,
    *,
    created_by: str,
    actor_id: str | None = None,
    allow_price_override: bool = False,
) -> Order:
    _check_items(db, payload.items, allow_price_override=allow_price_override)
    subtotal, discount, final_amount = _price_items(payload.items, payload.discount)
    now = utcnow()
    order = Order(
        id=generate_record_id(),
        customer_name=payload.customer_name,
        contact_number=payload.contact_number,
        email=str(payload.email) if payload.email else None,
        delivery_address=payload.delivery_address,
        subtotal=subtotal,
        discount=discount,
        advance_payment=to_money(payload.advance_payment),
        final_amount=final_amount,
        status="processing" if payload.status == "processing" else "pending",
        payment_method=payload.payment_method,
        notes=payload.notes,
        created_by=created_by,
        order_date=now,
        updated_at=now,
    )
    db.add(order)
    _replace_items(db, order, payload.items)
    log_activity(
        db,
        user_id=actor_id,
        action="order.create",
        details=f"Created order for {order.customer_name}",
        target_type="order",
        target_id=order.id,
        metadata_json={"items_count": len(payload.items), "final_amount": float(final_amount)},
    )

    if payload.status == "completed":
        db.flush()
        complete_order(db, order.id, cashier=created_by, actor_id=actor_id)
    elif payload.status == "cancelled":
        order.status = "cancelled"
    return order


def update_order(
    db: Session,
    order_id: str,
    payload: OrderUpdate,
    *,
    cashier: str,
    actor_id: str | None = None,
    allow_price_override: bool = False,
) -> Order:
    order = get_order(db, order_id, for_update=True)
    changes = payload.model_dump(exclude_unset=True)
    next_status = changes.pop("status", None) or order.status
    notes_only = set(changes) <= {"notes"}

    if order.status in TERMINAL_STATUSES and not notes_only:
        raise ValidationError(f"A {order.status} order can only have its notes changed")
    ensure_transition_allowed(order.status, next_status)

    if "notes" in changes:
        order.notes = changes.pop("notes") or None
    for field in CUSTOMER_FIELDS:
        if field in changes:
            value = changes[field]
            if value is None and field != "email":
                raise ValidationError(f"{field} cannot be null")
            setattr(order, field, str(value) if value is not None else None)

    if payload.items is not None or "discount" in changes:
        if payload.items is not None:
            _check_items(db, payload.items, allow_price_override=allow_price_override)
            items = payload.items
        else:
            items = [
                OrderItemIn(product_id=row.product_id, quantity=row.quantity, price=row.price)
                for row in order_items(db, [order.id])[order.id]
            ]
        discount = changes.get("discount")
        subtotal, discount, final_amount = _price_items(
            items, order.discount if discount is None else discount
        )
        order.subtotal = subtotal
        order.discount = discount
        order.final_amount = final_amount
        if payload.items is not None:
            _replace_items(db, order, items)
    if changes.get("advance_payment") is not None:
        order.advance_payment = to_money(changes["advance_payment"])
    order.updated_at = utcnow()

    if next_status != order.status:
        previous_status = order.status
        if next_status == "completed":
            db.flush()
            complete_order(db, order.id, cashier=cashier, actor_id=actor_id)
        else:
            order.status = next_status
        log_activity(
            db,
            user_id=actor_id,
            action="order.status.update",
            details=f"Order status changed from {previous_status} to {next_status}",
            target_type="order",
            target_id=order.id,
            metadata_json={"from_status": previous_status, "to_status": next_status, "sale_id": order.sale_id},
        )
    else:
        log_activity(
            db,
            user_id=actor_id,
            action="order.update",
            details=f"Updated order for {order.customer_name}",
            target_type="order",
            target_id=order.id,
            metadata_json={"fields": sorted(payload.model_fields_set)},
        )
    return order


def complete_order(db: Session, order_id: str, *, cashier: str, actor_id: str | None = None) -> Order:
    """Turn the order into one sale and decrement stock, at most once."""
    order = get_order(db, order_id, for_update=True)
    if order.status == "completed" or order.sale_id is not None:
        return order
    ensure_transition_allowed(order.status, "completed")

    items = order_items(db, [order.id])[order.id]
    if not items:
        raise ValidationError("Order has no items")

    quantities: dict[str, int] = {}
    for item in items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
    products = sales_service.ensure_stock(db, quantities)

    lines = [
        sales_service.SaleLine(
            product_id=item.product_id,
            quantity=item.quantity,
            price=to_money(item.price),
            purchase_price=products[item.product_id].purchase_price,
        )
        for item in items
    ]
    final_amount = to_money(order.final_amount)
    sale = sales_service.write_sale(
        db,
        lines=lines,
        products=products,
        discount=to_money(order.discount),
        payment_received=max(to_money(order.advance_payment), final_amount),
        cashier=cashier,
        store_location=settings.store_location,
        order_id=order.id,
        stock_reason="Order completed",
    )
    order.status = "completed"
    order.sale_id = sale.id
    order.updated_at = utcnow()

    log_activity(
        db,
        user_id=actor_id,
        action="order.complete",
        details=f"Completed order for {order.customer_name}",
        target_type="order",
        target_id=order.id,
        metadata_json={"sale_id": sale.id, "items_count": len(items), "total": float(sale.total)},
    )
    logger.info("Completed order %s as sale %s", order.id, sale.id)
    return order


def delete_order(db: Session, order_id: str, *, actor_id: str | None = None) -> None:
    order = get_order(db, order_id, for_update=True)
    log_activity(
        db,
        user_id=actor_id,
        action="order.delete",
        details=f"Deleted order for {order.customer_name}",
        target_type="order",
        target_id=order.id,
        metadata_json={"status": order.status, "sale_id": order.sale_id},
    )
    db.execute(delete(OrderItem).where(OrderItem.order_id == order.id))
    db.delete(order)


def list_orders(
    db: Session,
    *,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
    limit: int | None = 50,
    offset: int = 0,
) -> tuple[int, list[Order]]:
    validate_date_range(start_date, end_date)
    stmt = select(Order)
    if status:
        stmt = stmt.where(Order.status == status)
    stmt = apply_date_range(stmt, Order.order_date, start_date, end_date)
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Order.id).like(pattern),
                func.lower(Order.customer_name).like(pattern),
                func.lower(Order.contact_number).like(pattern),
                func.lower(func.coalesce(Order.email, "")).like(pattern),
            )
        )

    total = int(db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one())
    data_stmt = stmt.order_by(Order.order_date.desc(), Order.id.desc()).offset(offset)
    if limit is not None:
        data_stmt = data_stmt.limit(limit)
    rows = db.execute(data_stmt).scalars().all()
    return total, list(rows)


def orders_out(db: Session, orders: list[Order]) -> list[OrderOut]:
    items_by_order = order_items(db, [order.id for order in orders])
    names = catalog_service.product_names(
        db, [item.product_id for items in items_by_order.values() for item in items]
    )
    return [
        OrderOut(
            id=order.id,
            customer_name=order.customer_name,
            contact_number=order.contact_number,
            email=order.email,
            delivery_address=order.delivery_address,
            status=order.status,
            payment_method=order.payment_method,
            notes=order.notes,
            subtotal=money_out(order.subtotal),
            discount=money_out(order.discount),
            advance_payment=money_out(order.advance_payment),
            final_amount=money_out(order.final_amount),
            balance_due=money_out(balance_due(order)),
            created_by=order.created_by,
            sale_id=order.sale_id,
            order_date=order.order_date,
            updated_at=order.updated_at,
            items=[
                OrderItemOut(
                    product_id=item.product_id,
                    product_name=names.get(item.product_id, catalog_service.UNKNOWN_PRODUCT),
                    quantity=item.quantity,
                    price=money_out(item.price),
                    line_total=money_out(item.line_total),
                )
                for item in items_by_order.get(order.id, [])
            ],
        )
        for order in orders
    ]
