"""Product catalog: stock levels, quantity history and categories.

Every change to ``Product.quantity`` goes through ``_set_quantity`` so that
exactly one history row is appended per change. Nothing here commits; the
calling route owns the transaction.
"""
import logging
from decimal import Decimal

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from retailpos.core.dates import utcnow
from retailpos.core.errors import ConflictError, NotFoundError, ValidationError
from retailpos.core.id_utils import generate_record_id
from retailpos.core.money import to_money
from retailpos.models.order import Order, OrderItem
from retailpos.models.product import Category, Product, ProductQuantityHistory
from retailpos.schemas.product import ProductCreate, ProductUpdate
from retailpos.services.activity_service import log_activity

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT = "Unknown product"
OPEN_ORDER_STATUSES = ("pending", "processing")


def get_product(db: Session, product_id: str, *, for_update: bool = False) -> Product:
    stmt = select(Product).where(Product.id == product_id)
    if for_update:
        stmt = stmt.with_for_update()
    product = db.execute(stmt).scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product


def product_names(db: Session, product_ids: list[str]) -> dict[str, str]:
    if not product_ids:
        return {}
    rows = db.execute(
        select(Product.id, Product.name).where(Product.id.in_(set(product_ids)))
    ).all()
    return {product_id: name for product_id, name in rows}


def product_prices(db: Session, product_ids: list[str]) -> dict[str, Decimal]:
    if not product_ids:
        return {}
    rows = db.execute(
        select(Product.id, Product.price).where(Product.id.in_(set(product_ids)))
    ).all()
    return {product_id: price for product_id, price in rows}


def _next_history_sequence(db: Session, product_id: str) -> int:
    db.flush()
    current = db.execute(
        select(func.coalesce(func.max(ProductQuantityHistory.sequence), 0)).where(
            ProductQuantityHistory.product_id == product_id
        )
    ).scalar_one()
    return int(current) + 1


def _set_quantity(
    db: Session,
    product: Product,
    new_quantity: int,
    *,
    reason: str,
    reference_id: str | None = None,
) -> ProductQuantityHistory:
    old_quantity = product.quantity or 0
    entry = ProductQuantityHistory(
        id=generate_record_id(),
        product_id=product.id,
        sequence=_next_history_sequence(db, product.id),
        old_quantity=old_quantity,
        new_quantity=new_quantity,
        reason=reason,
        reference_id=reference_id,
        timestamp=utcnow(),
    )
    product.quantity = new_quantity
    product.last_updated = entry.timestamp
    db.add(entry)
    return entry


def add_category(db: Session, name: str) -> tuple[Category, bool]:
    """Return the category with this name, creating it when missing."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Category name is required")
    existing = db.execute(
        select(Category).where(func.lower(Category.name) == cleaned.lower())
    ).scalar_one_or_none()
    if existing:
        return existing, False
    category = Category(id=generate_record_id(), name=cleaned)
    db.add(category)
    db.flush()
    return category, True


def list_categories(db: Session) -> list[Category]:
    return list(db.execute(select(Category).order_by(Category.name.asc())).scalars().all())


def ensure_default_categories(db: Session, names: list[str]) -> int:
    created = 0
    for name in names:
        _, was_created = add_category(db, name)
        created += int(was_created)
    return created


def add_product(db: Session, payload: ProductCreate, *, actor_id: str | None = None) -> Product:
    now = utcnow()
    product = Product(
        id=generate_record_id(),
        name=payload.name,
        description=payload.description,
        category=payload.category,
        supplier=payload.supplier,
        quantity=0,
        price=to_money(payload.price),
        purchase_price=to_money(payload.purchase_price),
        last_updated=now,
    )
    db.add(product)
    if payload.category:
        add_category(db, payload.category)

    _set_quantity(db, product, payload.quantity, reason="Initial stock")
    log_activity(
        db,
        user_id=actor_id,
        action="product.create",
        details=f"Added product {product.name}",
        target_type="product",
        target_id=product.id,
        metadata_json={"quantity": payload.quantity, "price": float(product.price)},
    )
    return product


def update_product(
    db: Session,
    product_id: str,
    payload: ProductUpdate,
    *,
    actor_id: str | None = None,
) -> Product:
    product = get_product(db, product_id, for_update=True)
    changes = payload.model_dump(exclude_unset=True)

    new_quantity = changes.pop("quantity", None)
    for field in ("price", "purchase_price"):
        if field in changes:
            if changes[field] is None:
                raise ValidationError(f"{field} cannot be null")
            changes[field] = to_money(changes[field])
    if "name" in changes and changes["name"] is None:
        raise ValidationError("name cannot be null")
    if "description" in changes and changes["description"] is None:
        changes["description"] = ""
    for field in ("category", "supplier"):
        if field in changes and not changes[field]:
            changes[field] = None

    for field, value in changes.items():
        setattr(product, field, value)
    if changes.get("category"):
        add_category(db, changes["category"])

    if new_quantity is not None and new_quantity != product.quantity:
        _set_quantity(db, product, new_quantity, reason="Manual update")
    product.last_updated = utcnow()

    log_activity(
        db,
        user_id=actor_id,
        action="product.update",
        details=f"Updated product {product.name}",
        target_type="product",
        target_id=product.id,
        metadata_json={"fields": sorted(payload.model_fields_set)},
    )
    return product


def adjust_quantity(
    db: Session,
    product_id: str,
    quantity: int,
    *,
    reason: str,
    reference_id: str | None = None,
    product: Product | None = None,
) -> ProductQuantityHistory:
    """Remove ``quantity`` units. Stock is clamped at zero, never negative."""
    if quantity < 0:
        raise ValidationError("Adjustment quantity cannot be negative; use restock to add stock")
    if product is None:
        product = get_product(db, product_id, for_update=True)
    new_quantity = max(0, product.quantity - quantity)
    if product.quantity - quantity < 0:
        logger.warning(
            "Stock for product %s clamped at zero (had %s, removed %s)",
            product.id,
            product.quantity,
            quantity,
        )
    return _set_quantity(db, product, new_quantity, reason=reason, reference_id=reference_id)


def restock(
    db: Session,
    product_id: str,
    quantity: int,
    *,
    reason: str = "Restock",
    actor_id: str | None = None,
) -> ProductQuantityHistory:
    if quantity <= 0:
        raise ValidationError("Restock quantity must be greater than zero")
    product = get_product(db, product_id, for_update=True)
    entry = _set_quantity(db, product, product.quantity + quantity, reason=reason)
    log_activity(
        db,
        user_id=actor_id,
        action="product.restock",
        details=f"Restocked {product.name} by {quantity}",
        target_type="product",
        target_id=product.id,
        metadata_json={"old_quantity": entry.old_quantity, "new_quantity": entry.new_quantity},
    )
    return entry


def open_orders_for_product(db: Session, product_id: str) -> list[str]:
    rows = db.execute(
        select(Order.id)
        .join(OrderItem, OrderItem.order_id == Order.id)
        .where(OrderItem.product_id == product_id, Order.status.in_(OPEN_ORDER_STATUSES))
        .distinct()
    ).scalars().all()
    return list(rows)


def delete_product(db: Session, product_id: str, *, actor_id: str | None = None) -> None:
    product = get_product(db, product_id, for_update=True)
    open_orders = open_orders_for_product(db, product.id)
    if open_orders:
        raise ConflictError(
            f"Product is referenced by {len(open_orders)} open order(s); complete or cancel them first"
        )

    db.execute(delete(ProductQuantityHistory).where(ProductQuantityHistory.product_id == product.id))
    db.delete(product)
    log_activity(
        db,
        user_id=actor_id,
        action="product.delete",
        details=f"Deleted product {product.name}",
        target_type="product",
        target_id=product.id,
    )


def list_products(
    db: Session,
    *,
    search: str | None = None,
    category: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[Product]]:
    count_stmt = select(func.count(Product.id))
    data_stmt = select(Product)
    if search:
        pattern = f"%{search.strip().lower()}%"
        condition = or_(
            func.lower(Product.name).like(pattern),
            func.lower(Product.description).like(pattern),
            func.lower(func.coalesce(Product.supplier, "")).like(pattern),
        )
        count_stmt = count_stmt.where(condition)
        data_stmt = data_stmt.where(condition)
    if category:
        condition = func.lower(Product.category) == category.strip().lower()
        count_stmt = count_stmt.where(condition)
        data_stmt = data_stmt.where(condition)

    total = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        data_stmt.order_by(func.lower(Product.name).asc(), Product.id.asc()).offset(offset).limit(limit)
    ).scalars().all()
    return total, list(rows)


def get_quantity_history(db: Session, product_id: str) -> list[ProductQuantityHistory]:
    get_product(db, product_id)
    rows = db.execute(
        select(ProductQuantityHistory)
        .where(ProductQuantityHistory.product_id == product_id)
        .order_by(ProductQuantityHistory.sequence.asc())
    ).scalars().all()
    return list(rows)


def low_stock(db: Session, threshold: int) -> list[Product]:
    rows = db.execute(
        select(Product)
        .where(Product.quantity <= threshold)
        .order_by(Product.quantity.asc(), func.lower(Product.name).asc())
    ).scalars().all()
    return list(rows)
