from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.config import settings
from retailpos.core.deps import get_db
from retailpos.core.money import money_out
from retailpos.core.permissions import has_permission, require_permission
from retailpos.core.security_current import get_current_user
from retailpos.models.product import Product
from retailpos.models.user import User
from retailpos.schemas.common import DeletedOut, PaginationMeta
from retailpos.schemas.product import (
    CategoryCreate,
    CategoryOut,
    LowStockOut,
    ProductCreate,
    ProductCreateOut,
    ProductListOut,
    ProductOut,
    ProductUpdate,
    QuantityAdjustIn,
    QuantityHistoryListOut,
    QuantityHistoryOut,
    RestockIn,
)
from retailpos.services import catalog_service
from retailpos.services.activity_service import log_activity

router = APIRouter(prefix="/products", tags=["products"])
category_router = APIRouter(prefix="/categories", tags=["products"])


def product_out(product: Product) -> ProductOut:
    return ProductOut(
        id=product.id,
        name=product.name,
        description=product.description or "",
        category=product.category,
        supplier=product.supplier,
        quantity=product.quantity,
        price=money_out(product.price),
        purchase_price=money_out(product.purchase_price),
        last_updated=product.last_updated,
    )


@router.post(
    "",
    response_model=ProductCreateOut,
    status_code=201,
    summary="Create product",
    description="Records an `Initial stock` history entry for the starting quantity.",
    responses=error_responses(400, 401, 403, 422, 500, path="/products"),
)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("inventory.manage")),
):
    product = catalog_service.add_product(db, payload, actor_id=actor.id)
    db.commit()
    return ProductCreateOut(id=product.id)


@router.get(
    "",
    response_model=ProductListOut,
    summary="List products",
    responses=error_responses(401, 422, 500, path="/products"),
)
def list_products(
    search: str | None = Query(default=None, description="Matches name, description or supplier"),
    category: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    normalized_search = search.strip() if search and search.strip() else None
    normalized_category = category.strip() if category and category.strip() else None
    total, rows = catalog_service.list_products(
        db,
        search=normalized_search,
        category=normalized_category,
        limit=limit,
        offset=offset,
    )
    items = [product_out(row) for row in rows]
    count = len(items)
    return ProductListOut(
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
        search=normalized_search,
        category=normalized_category,
        items=items,
    )


@router.get(
    "/low-stock",
    response_model=LowStockOut,
    summary="Products at or below a stock threshold",
    responses=error_responses(401, 422, 500, path="/products/low-stock"),
)
def low_stock(
    threshold: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    resolved = settings.low_stock_default_threshold if threshold is None else threshold
    rows = catalog_service.low_stock(db, resolved)
    return LowStockOut(threshold=resolved, items=[product_out(row) for row in rows])


@router.get(
    "/{product_id}",
    response_model=ProductOut,
    summary="Get product",
    responses=error_responses(401, 404, 500, path="/products/{product_id}"),
)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return product_out(catalog_service.get_product(db, product_id))


@router.patch(
    "/{product_id}",
    response_model=ProductOut,
    summary="Update product",
    description=(
        "Partial update. A changed `quantity` records a `Manual update` history entry. "
        "Changing prices also requires the `prices.manage` permission."
    ),
    responses=error_responses(400, 401, 403, 404, 422, 500, path="/products/{product_id}"),
)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("inventory.manage")),
):
    if payload.touches_prices and not has_permission(role=actor.role, permission="prices.manage"):
        raise HTTPException(status_code=403, detail="Insufficient permission for this action")
    product = catalog_service.update_product(db, product_id, payload, actor_id=actor.id)
    db.commit()
    db.refresh(product)
    return product_out(product)


@router.post(
    "/{product_id}/adjust",
    response_model=QuantityHistoryOut,
    summary="Remove stock",
    description="Removes units from stock. The result is clamped at zero.",
    responses=error_responses(400, 401, 403, 404, 422, 500, path="/products/{product_id}/adjust"),
)
def adjust_quantity(
    product_id: str,
    payload: QuantityAdjustIn,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("inventory.manage")),
):
    entry = catalog_service.adjust_quantity(db, product_id, payload.quantity, reason=payload.reason)
    log_activity(
        db,
        user_id=actor.id,
        action="product.adjust",
        details=f"Removed {payload.quantity} unit(s): {payload.reason}",
        target_type="product",
        target_id=product_id,
        metadata_json={"old_quantity": entry.old_quantity, "new_quantity": entry.new_quantity},
    )
    db.commit()
    return QuantityHistoryOut(
        sequence=entry.sequence,
        timestamp=entry.timestamp,
        old_quantity=entry.old_quantity,
        new_quantity=entry.new_quantity,
        reason=entry.reason,
        reference_id=entry.reference_id,
    )


@router.post(
    "/{product_id}/restock",
    response_model=QuantityHistoryOut,
    summary="Add stock",
    responses=error_responses(400, 401, 403, 404, 422, 500, path="/products/{product_id}/restock"),
)
def restock(
    product_id: str,
    payload: RestockIn,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("inventory.manage")),
):
    entry = catalog_service.restock(
        db, product_id, payload.quantity, reason=payload.reason, actor_id=actor.id
    )
    db.commit()
    return QuantityHistoryOut(
        sequence=entry.sequence,
        timestamp=entry.timestamp,
        old_quantity=entry.old_quantity,
        new_quantity=entry.new_quantity,
        reason=entry.reason,
        reference_id=entry.reference_id,
    )


@router.get(
    "/{product_id}/history",
    response_model=QuantityHistoryListOut,
    summary="Quantity history",
    responses=error_responses(401, 404, 500, path="/products/{product_id}/history"),
)
def quantity_history(
    product_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = catalog_service.get_quantity_history(db, product_id)
    return QuantityHistoryListOut(
        product_id=product_id,
        items=[
            QuantityHistoryOut(
                sequence=row.sequence,
                timestamp=row.timestamp,
                old_quantity=row.old_quantity,
                new_quantity=row.new_quantity,
                reason=row.reason,
                reference_id=row.reference_id,
            )
            for row in rows
        ],
    )


@router.delete(
    "/{product_id}",
    response_model=DeletedOut,
    summary="Delete product",
    description="Rejected with 409 while a pending or processing order contains the product.",
    responses=error_responses(401, 403, 404, 409, 500, path="/products/{product_id}"),
)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("inventory.manage")),
):
    catalog_service.delete_product(db, product_id, actor_id=actor.id)
    db.commit()
    return DeletedOut(id=product_id)


@category_router.get(
    "",
    response_model=list[CategoryOut],
    summary="List categories",
    responses=error_responses(401, 500, path="/categories"),
)
def list_categories(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [CategoryOut(id=row.id, name=row.name) for row in catalog_service.list_categories(db)]


@category_router.post(
    "",
    response_model=CategoryOut,
    summary="Add category",
    description="Idempotent: an existing name (case-insensitive) is returned unchanged.",
    responses=error_responses(400, 401, 403, 422, 500, path="/categories"),
)
def add_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("inventory.manage")),
):
    category, created = catalog_service.add_category(db, payload.name)
    if created:
        log_activity(
            db,
            user_id=actor.id,
            action="category.create",
            details=f"Added category {category.name}",
            target_type="category",
            target_id=category.id,
        )
    db.commit()
    return CategoryOut(id=category.id, name=category.name)
