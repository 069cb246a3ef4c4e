"""Read-only margin figures over the catalog, the sales ledger and expenses."""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from retailpos.core.dates import apply_date_range, validate_date_range
from retailpos.core.errors import ValidationError
from retailpos.core.money import ZERO_MONEY, to_money
from retailpos.models.product import Product
from retailpos.models.sales import Sale, SaleItem
from retailpos.services import catalog_service, expense_service

PROFIT_BASES = ("current", "snapshot")


@dataclass(frozen=True)
class PricingRow:
    product: Product
    total_purchase_value: Decimal
    total_selling_value: Decimal
    net_profit: Decimal
    real_profit: Decimal


def _check_basis(basis: str) -> str:
    if basis not in PROFIT_BASES:
        raise ValidationError(f"Invalid profit basis. Allowed: {', '.join(PROFIT_BASES)}")
    return basis


def net_profit(product: Product) -> Decimal:
    """Profit if the remaining stock sold at the current prices."""
    return to_money((to_money(product.price) - to_money(product.purchase_price)) * product.quantity)


def _sold_lines(
    db: Session,
    product_ids: list[str] | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
):
    stmt = select(SaleItem)
    if start_date or end_date:
        stmt = stmt.join(Sale, Sale.id == SaleItem.sale_id)
        stmt = apply_date_range(stmt, Sale.date, start_date, end_date)
    if product_ids is not None:
        stmt = stmt.where(SaleItem.product_id.in_(product_ids))
    return db.execute(stmt).scalars().all()


def _line_profit(line: SaleItem, current_purchase_price: Decimal, basis: str) -> Decimal:
    cost = current_purchase_price
    if basis == "snapshot" and line.purchase_price is not None:
        cost = to_money(line.purchase_price)
    return (to_money(line.price) - cost) * line.quantity


def real_profit(db: Session, product_id: str, *, basis: str = "current") -> tuple[int, Decimal]:
    """Return ``(units_sold, profit)`` across every recorded sale of the product.

    ``current`` prices every sold unit at today's purchase price; ``snapshot``
    uses the purchase price captured on each sale line.
    """
    _check_basis(basis)
    product = catalog_service.get_product(db, product_id)
    current_cost = to_money(product.purchase_price)
    units = 0
    profit = ZERO_MONEY
    for line in _sold_lines(db, [product_id]):
        units += line.quantity
        profit += _line_profit(line, current_cost, basis)
    return units, to_money(profit)


def pricing_rows(
    db: Session,
    *,
    basis: str = "current",
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[PricingRow]:
    _check_basis(basis)
    validate_date_range(start_date, end_date)
    products = db.execute(select(Product).order_by(func.lower(Product.name).asc())).scalars().all()
    cost_by_product = {product.id: to_money(product.purchase_price) for product in products}

    profit_by_product: dict[str, Decimal] = {product.id: ZERO_MONEY for product in products}
    for line in _sold_lines(db, list(cost_by_product), start_date, end_date):
        profit_by_product[line.product_id] += _line_profit(line, cost_by_product[line.product_id], basis)

    rows: list[PricingRow] = []
    for product in products:
        rows.append(
            PricingRow(
                product=product,
                total_purchase_value=to_money(to_money(product.purchase_price) * product.quantity),
                total_selling_value=to_money(to_money(product.price) * product.quantity),
                net_profit=net_profit(product),
                real_profit=to_money(profit_by_product[product.id]),
            )
        )
    return rows


def profit_summary(
    db: Session,
    *,
    basis: str = "current",
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict[str, Decimal]:
    rows = pricing_rows(db, basis=basis, start_date=start_date, end_date=end_date)
    total_real = to_money(sum((row.real_profit for row in rows), ZERO_MONEY))
    expenses = expense_service.total_expenses(db, start_date, end_date)
    return {
        "total_net_profit": to_money(sum((row.net_profit for row in rows), ZERO_MONEY)),
        "total_real_profit": total_real,
        "total_expenses": expenses,
        "final_net_profit": final_net_profit(total_real, expenses),
    }


def final_net_profit(total_real_profit: Decimal, expenses: Decimal) -> Decimal:
    return to_money(to_money(total_real_profit) - to_money(expenses))


def orphaned_sale_items(db: Session) -> list[SaleItem]:
    """Sale lines whose product has since been deleted."""
    rows = db.execute(
        select(SaleItem)
        .outerjoin(Product, Product.id == SaleItem.product_id)
        .where(Product.id.is_(None))
        .order_by(SaleItem.sale_id, SaleItem.position)
    ).scalars().all()
    return list(rows)
