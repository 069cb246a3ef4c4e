from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.deps import get_db
from retailpos.core.money import money_out
from retailpos.core.permissions import require_permission
from retailpos.models.user import User
from retailpos.routers.products import product_out
from retailpos.schemas.pricing import (
    OrphanedSaleItemOut,
    PricingRowOut,
    PricingTableOut,
    ProfitBasis,
    ProfitSummaryOut,
    RealProfitOut,
)
from retailpos.schemas.product import PriceUpdateIn, ProductOut, ProductUpdate
from retailpos.services import catalog_service, pricing_service

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get(
    "",
    response_model=PricingTableOut,
    summary="Per-product margins",
    description=(
        "`basis=current` prices every sold unit at today's purchase price; "
        "`basis=snapshot` uses the purchase price recorded on each sale line."
    ),
    responses=error_responses(400, 401, 403, 422, 500, path="/pricing"),
)
def pricing_table(
    basis: ProfitBasis = Query(default="current"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("prices.manage")),
):
    rows = pricing_service.pricing_rows(db, basis=basis, start_date=start_date, end_date=end_date)
    return PricingTableOut(
        basis=basis,
        items=[
            PricingRowOut(
                product_id=row.product.id,
                name=row.product.name,
                category=row.product.category,
                quantity=row.product.quantity,
                purchase_price=money_out(row.product.purchase_price),
                price=money_out(row.product.price),
                total_purchase_value=money_out(row.total_purchase_value),
                total_selling_value=money_out(row.total_selling_value),
                net_profit=money_out(row.net_profit),
                real_profit=money_out(row.real_profit),
            )
            for row in rows
        ],
    )


@router.get(
    "/summary",
    response_model=ProfitSummaryOut,
    summary="Profit summary",
    description="Final net profit is total real profit minus total expenses.",
    responses=error_responses(400, 401, 403, 422, 500, path="/pricing/summary"),
)
def profit_summary(
    basis: ProfitBasis = Query(default="current"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("prices.manage")),
):
    summary = pricing_service.profit_summary(db, basis=basis, start_date=start_date, end_date=end_date)
    return ProfitSummaryOut(
        basis=basis,
        start_date=start_date,
        end_date=end_date,
        **{key: money_out(value) for key, value in summary.items()},
    )


@router.get(
    "/orphaned-sale-items",
    response_model=list[OrphanedSaleItemOut],
    summary="Sale lines whose product was deleted",
    responses=error_responses(401, 403, 500, path="/pricing/orphaned-sale-items"),
)
def orphaned_sale_items(
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("prices.manage")),
):
    return [
        OrphanedSaleItemOut(
            sale_id=item.sale_id,
            product_id=item.product_id,
            quantity=item.quantity,
            price=money_out(item.price),
            line_total=money_out(item.line_total),
        )
        for item in pricing_service.orphaned_sale_items(db)
    ]


@router.get(
    "/products/{product_id}/real-profit",
    response_model=RealProfitOut,
    summary="Realised profit for one product",
    responses=error_responses(400, 401, 403, 404, 422, 500, path="/pricing/products/{product_id}/real-profit"),
)
def real_profit(
    product_id: str,
    basis: ProfitBasis = Query(default="current"),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("prices.manage")),
):
    units, profit = pricing_service.real_profit(db, product_id, basis=basis)
    return RealProfitOut(product_id=product_id, basis=basis, units_sold=units, real_profit=money_out(profit))


@router.patch(
    "/products/{product_id}",
    response_model=ProductOut,
    summary="Update product prices",
    responses=error_responses(400, 401, 403, 404, 422, 500, path="/pricing/products/{product_id}"),
)
def update_prices(
    product_id: str,
    payload: PriceUpdateIn,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("prices.manage")),
):
    update = ProductUpdate(**payload.model_dump(exclude_none=True))
    product = catalog_service.update_product(db, product_id, update, actor_id=actor.id)
    db.commit()
    db.refresh(product)
    return product_out(product)
