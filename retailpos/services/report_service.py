import csv
import io
from datetime import date

from sqlalchemy.orm import Session

from retailpos.core.money import ZERO_MONEY, money_out, to_money
from retailpos.schemas.order import OrderOut
from retailpos.schemas.report import (
    OrdersReportOut,
    OrdersReportTotalsOut,
    SalesReportOut,
    SalesReportTotalsOut,
)
from retailpos.schemas.sales import SaleOut
from retailpos.services import order_service, pricing_service, sales_service

SALES_CSV_FIELDS = [
    "Date",
    "Sale ID",
    "Cashier",
    "Products",
    "Subtotal",
    "Discount",
    "Total",
    "Payment Received",
    "Change",
]
ORDERS_CSV_FIELDS = [
    "Order ID",
    "Date",
    "Customer",
    "Contact",
    "Products",
    "Total Amount",
    "Advance Payment",
    "Balance Due",
    "Status",
    "Payment Method",
]
PRICING_CSV_FIELDS = [
    "Product",
    "Category",
    "Purchase Price",
    "Selling Price",
    "Quantity",
    "Total Purchase Value",
    "Total Selling Value",
    "Net Profit",
    "Real Profit",
]


def _products_label(items) -> str:
    return "; ".join(f"{item.product_name} (x{item.quantity})" for item in items)


def _money_text(value: float) -> str:
    return f"{value:.2f}"


def sales_report(
    db: Session,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
    cashier: str | None = None,
) -> SalesReportOut:
    _, sales = sales_service.list_sales(
        db,
        start_date=start_date,
        end_date=end_date,
        cashier=cashier,
        search=search,
        limit=None,
    )
    rows = sales_service.sales_out(db, sales)

    revenue = sum((to_money(sale.total) for sale in sales), ZERO_MONEY)
    discount = sum((to_money(sale.discount) for sale in sales), ZERO_MONEY)
    items_sold = sum(item.quantity for row in rows for item in row.items)
    average_ticket = to_money(revenue / len(sales)) if sales else ZERO_MONEY
    return SalesReportOut(
        start_date=start_date,
        end_date=end_date,
        search=search,
        cashier=cashier,
        totals=SalesReportTotalsOut(
            sale_count=len(sales),
            items_sold=items_sold,
            revenue=money_out(revenue),
            discount=money_out(discount),
            average_ticket=money_out(average_ticket),
        ),
        items=rows,
    )


def orders_report(
    db: Session,
    *,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
) -> OrdersReportOut:
    _, orders = order_service.list_orders(
        db,
        status=status,
        start_date=start_date,
        end_date=end_date,
        search=search,
        limit=None,
    )
    by_status = {name: 0 for name in order_service.ALLOWED_ORDER_TRANSITIONS}
    for order in orders:
        by_status[order.status] = by_status.get(order.status, 0) + 1
    return OrdersReportOut(
        start_date=start_date,
        end_date=end_date,
        status=status,
        search=search,
        totals=OrdersReportTotalsOut(
            order_count=len(orders),
            by_status=by_status,
            total_amount=money_out(sum((to_money(o.final_amount) for o in orders), ZERO_MONEY)),
            advance_collected=money_out(sum((to_money(o.advance_payment) for o in orders), ZERO_MONEY)),
            balance_due=money_out(sum((order_service.balance_due(o) for o in orders), ZERO_MONEY)),
        ),
        items=order_service.orders_out(db, orders),
    )


def sales_csv(sales: list[SaleOut]) -> tuple[int, str]:
    writer_io = io.StringIO()
    writer = csv.DictWriter(writer_io, fieldnames=SALES_CSV_FIELDS)
    writer.writeheader()
    for sale in sales:
        writer.writerow(
            {
                "Date": sale.date.isoformat(),
                "Sale ID": sale.id,
                "Cashier": sale.cashier,
                "Products": _products_label(sale.items),
                "Subtotal": _money_text(sale.subtotal),
                "Discount": _money_text(sale.discount),
                "Total": _money_text(sale.total),
                "Payment Received": _money_text(sale.payment_received),
                "Change": _money_text(sale.change),
            }
        )
    return len(sales), writer_io.getvalue()


def orders_csv(orders: list[OrderOut]) -> tuple[int, str]:
    writer_io = io.StringIO()
    writer = csv.DictWriter(writer_io, fieldnames=ORDERS_CSV_FIELDS)
    writer.writeheader()
    for order in orders:
        writer.writerow(
            {
                "Order ID": order.id,
                "Date": order.order_date.date().isoformat(),
                "Customer": order.customer_name,
                "Contact": order.contact_number,
                "Products": _products_label(order.items),
                "Total Amount": _money_text(order.final_amount),
                "Advance Payment": _money_text(order.advance_payment),
                "Balance Due": _money_text(order.balance_due),
                "Status": order.status,
                "Payment Method": order.payment_method,
            }
        )
    return len(orders), writer_io.getvalue()


def pricing_csv(rows: list[pricing_service.PricingRow]) -> tuple[int, str]:
    writer_io = io.StringIO()
    writer = csv.DictWriter(writer_io, fieldnames=PRICING_CSV_FIELDS)
    writer.writeheader()
    for row in rows:
        writer.writerow(
            {
                "Product": row.product.name,
                "Category": row.product.category or "",
                "Purchase Price": _money_text(money_out(row.product.purchase_price)),
                "Selling Price": _money_text(money_out(row.product.price)),
                "Quantity": row.product.quantity,
                "Total Purchase Value": _money_text(money_out(row.total_purchase_value)),
                "Total Selling Value": _money_text(money_out(row.total_selling_value)),
                "Net Profit": _money_text(money_out(row.net_profit)),
                "Real Profit": _money_text(money_out(row.real_profit)),
            }
        )
    return len(rows), writer_io.getvalue()


def sales_report_lines(report: SalesReportOut) -> list[str]:
    period = f"{report.start_date or 'beginning'} to {report.end_date or 'today'}"
    lines = [
        f"Period: {period}",
        f"Sales: {report.totals.sale_count}",
        f"Items sold: {report.totals.items_sold}",
        f"Revenue: {report.totals.revenue:.2f}",
        f"Discounts: {report.totals.discount:.2f}",
        f"Average ticket: {report.totals.average_ticket:.2f}",
        "",
    ]
    for sale in report.items:
        lines.append(
            f"{sale.date:%Y-%m-%d %H:%M}  {sale.id[:8]}  {sale.cashier}  total {sale.total:.2f}"
        )
        for item in sale.items:
            lines.append(f"    {item.product_name} x{item.quantity} @ {item.price:.2f}")
    return lines


def receipt_lines(sale: SaleOut) -> list[str]:
    lines = [
        f"Receipt: {sale.id}",
        f"Date: {sale.date:%Y-%m-%d %H:%M}",
        f"Cashier: {sale.cashier}",
        f"Store: {sale.store_location}",
        "",
    ]
    for item in sale.items:
        lines.append(f"{item.product_name} x{item.quantity} @ {item.price:.2f} = {item.line_total:.2f}")
    lines.extend(
        [
            "",
            f"Subtotal: {sale.subtotal:.2f}",
            f"Discount: {sale.discount:.2f}",
            f"Total: {sale.total:.2f}",
            f"Paid: {sale.payment_received:.2f}",
            f"Change: {sale.change:.2f}",
        ]
    )
    if sale.order_id:
        lines.append(f"Order: {sale.order_id}")
    return lines
