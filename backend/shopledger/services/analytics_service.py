# Overview: Service-layer operations for analytics; read-only aggregation over transactions and the catalog.

from __future__ import annotations

import math
from datetime import datetime, timedelta

from flask import current_app

from ..models import Product, Transaction
from ..validation import ValidationError
from shopledger.time_utils import (
    utcnow,
    to_utc_z,
    local_date,
    local_day_start,
    local_month_start,
    days_between,
)
from .settings_service import get_shop_timezone
from .transaction_service import get_transactions_by_date_range
"""
Analytics Semantics (authoritative)

- Read-only: nothing here writes to the session. Results are best-effort
  snapshots and may straddle a concurrent checkout.
- Calendar boundaries ("today", "this month") are in the shop timezone
  (ShopSettings.timezone); storage stays UTC-naive.
- Windows end at `now` and are inclusive on both ends:
    daily   = start of today .. now
    weekly  = now - 7x24h .. now
    monthly = start of this month .. now
- Money is integer cents. Revenue uses the frozen transaction totals or line
  snapshots; cost uses the LIVE catalog cost price (0 when unset or when the
  product has been deleted).
- Category grouping resolves the product's current category; lines whose
  product no longer exists are left out of category figures.
"""

PERIODS = ("daily", "weekly", "monthly")
TOP_N = 5
TREND_DAYS = 7


def _default_min_stock() -> int:
    return current_app.config.get("DEFAULT_MIN_STOCK", 5)


def _min_stock(product: Product) -> int:
    return product.min_stock if product.min_stock is not None else _default_min_stock()


def _completed(transactions: list[Transaction]) -> list[Transaction]:
    return [t for t in transactions if t.status == "completed"]


def _products_by_id() -> dict[str, Product]:
    return {p.id: p for p in Product.query.all()}


def _line_cost_cents(line, products: dict[str, Product]) -> int:
    product = products.get(line.product_id)
    cost = product.cost_price_cents if product is not None else None
    return (cost or 0) * line.quantity


def _margin_pct(revenue_cents: int, cost_cents: int) -> float:
    if revenue_cents <= 0:
        return 0.0
    return round((revenue_cents - cost_cents) / revenue_cents * 100.0, 2)


def window_start(period: str, now: datetime, tz) -> datetime:
    if period == "daily":
        return local_day_start(now, tz)
    if period == "weekly":
        return now - timedelta(days=7)
    if period == "monthly":
        return local_month_start(now, tz)
    raise ValidationError(f"period must be one of: {', '.join(PERIODS)}")


def _sales_trend(now: datetime, tz) -> list[dict]:
    today = local_date(now, tz)
    # One spare day before the oldest bucket absorbs DST-length days
    first_day_start = local_day_start(now, tz) - timedelta(days=TREND_DAYS)
    recent = _completed(get_transactions_by_date_range(first_day_start, now))

    by_day: dict = {}
    for txn in recent:
        day = local_date(txn.created_at, tz)
        by_day[day] = by_day.get(day, 0) + txn.total_amount_cents

    trend = []
    for offset in range(TREND_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        trend.append({"date": day.isoformat(), "amount_cents": by_day.get(day, 0)})
    return trend


def sales_analytics(period: str, *, now: datetime | None = None) -> dict:
    """
    Dashboard aggregates for a period (daily | weekly | monthly).

    daily_sales_cents always covers the current local day only, whatever the
    period. sales_trend always covers the last 7 local days ending today.
    """
    if period not in PERIODS:
        raise ValidationError(f"period must be one of: {', '.join(PERIODS)}")

    now = now or utcnow()
    tz = get_shop_timezone()
    start = window_start(period, now, tz)

    transactions = _completed(get_transactions_by_date_range(start, now))
    products = _products_by_id()
    today = local_date(now, tz)

    daily_sales = sum(
        t.total_amount_cents for t in transactions if local_date(t.created_at, tz) == today
    )
    items_sold = sum(t.items_sold for t in transactions)
    low_stock_items = sum(
        1 for p in products.values() if p.is_active and (p.stock or 0) < _min_stock(p)
    )

    total_revenue = sum(t.total_amount_cents for t in transactions)
    total_cost = 0
    category_revenue: dict[str, int] = {}
    product_quantity: dict[str, dict] = {}
    for txn in transactions:
        for line in txn.lines:
            total_cost += _line_cost_cents(line, products)

            product = products.get(line.product_id)
            if product is not None:
                category_revenue[product.category] = (
                    category_revenue.get(product.category, 0) + line.line_total_cents
                )

            stats = product_quantity.setdefault(line.product_id, {"name": line.name, "quantity": 0})
            stats["name"] = line.name
            stats["quantity"] += line.quantity

    top_categories = sorted(category_revenue.items(), key=lambda kv: (-kv[1], kv[0]))[:TOP_N]
    top_products = sorted(
        product_quantity.items(), key=lambda kv: (-kv[1]["quantity"], kv[1]["name"])
    )[:TOP_N]

    return {
        "period": period,
        "window_start": to_utc_z(start),
        "window_end": to_utc_z(now),
        "transaction_count": len(transactions),
        "daily_sales_cents": daily_sales,
        "items_sold": items_sold,
        "low_stock_items": low_stock_items,
        "total_revenue_cents": total_revenue,
        "total_cost_cents": total_cost,
        "profit_margin": _margin_pct(total_revenue, total_cost),
        "top_categories": [
            {"name": name, "amount_cents": amount} for name, amount in top_categories
        ],
        "top_products": [
            {"product_id": pid, "name": stats["name"], "quantity": stats["quantity"]}
            for pid, stats in top_products
        ],
        "sales_trend": _sales_trend(now, tz),
    }


def _alert_entry(product: Product, **extra) -> dict:
    entry = {"id": product.id, "name": product.name, "current_stock": product.stock or 0}
    entry.update(extra)
    return entry


def inventory_alerts(*, now: datetime | None = None) -> list[dict]:
    """
    Stock alert buckets: low_stock, out_of_stock, expiring_soon.

    Buckets are computed independently and only non-empty ones are returned.
    A product can sit in more than one bucket, except that low_stock requires
    stock > 0, so nothing is both low and out of stock.
    """
    now = now or utcnow()
    horizon = current_app.config.get("EXPIRY_ALERT_DAYS", 7)
    products = sorted(_products_by_id().values(), key=lambda p: (p.name, p.id))

    low_stock = [
        _alert_entry(p)
        for p in products
        if p.is_active and 0 < (p.stock or 0) < _min_stock(p)
    ]
    out_of_stock = [_alert_entry(p) for p in products if (p.stock or 0) == 0]

    expiring_soon = []
    for p in products:
        if p.expiry_date is None:
            continue
        days_to_expiry = math.ceil(days_between(p.expiry_date, now))
        if 0 < days_to_expiry <= horizon:
            expiring_soon.append(_alert_entry(p, days_to_expiry=days_to_expiry))

    alerts = []
    for alert_type, entries in (
        ("low_stock", low_stock),
        ("out_of_stock", out_of_stock),
        ("expiring_soon", expiring_soon),
    ):
        if entries:
            alerts.append({"type": alert_type, "products": entries})
    return alerts


def sales_summary(start: datetime, end: datetime) -> dict:
    """Headline figures for an arbitrary range."""
    transactions = _completed(get_transactions_by_date_range(start, end))
    products = _products_by_id()

    total_sales = sum(t.total_amount_cents for t in transactions)
    total_cost = sum(_line_cost_cents(line, products) for t in transactions for line in t.lines)
    count = len(transactions)

    return {
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "total_sales_cents": total_sales,
        "total_transactions": count,
        "average_order_value_cents": round(total_sales / count) if count else 0,
        "total_items": sum(t.items_sold for t in transactions),
        "total_discount_cents": sum(t.discount_cents for t in transactions),
        "total_tax_cents": sum(t.tax_cents for t in transactions),
        "profit_margin": _margin_pct(total_sales, total_cost),
    }


def product_performance(start: datetime, end: datetime, *, limit: int = 10) -> list[dict]:
    """Per-product quantity, revenue, profit and margin, best sellers first."""
    transactions = _completed(get_transactions_by_date_range(start, end))
    products = _products_by_id()

    stats: dict[str, dict] = {}
    for txn in transactions:
        for line in txn.lines:
            row = stats.setdefault(line.product_id, {
                "name": line.name, "quantity_sold": 0, "revenue_cents": 0, "cost_cents": 0,
            })
            row["quantity_sold"] += line.quantity
            row["revenue_cents"] += line.line_total_cents
            row["cost_cents"] += _line_cost_cents(line, products)

    rows = []
    for product_id, row in stats.items():
        product = products.get(product_id)
        profit = row["revenue_cents"] - row["cost_cents"]
        rows.append({
            "product_id": product_id,
            "name": product.name if product is not None else row["name"],
            "quantity_sold": row["quantity_sold"],
            "revenue_cents": row["revenue_cents"],
            "profit_cents": profit,
            "margin": _margin_pct(row["revenue_cents"], row["cost_cents"]),
        })
    rows.sort(key=lambda r: (-r["quantity_sold"], r["name"]))
    return rows[:limit]


def category_performance(start: datetime, end: datetime) -> list[dict]:
    """Per-category revenue, units, average price and margin, by revenue."""
    transactions = _completed(get_transactions_by_date_range(start, end))
    products = _products_by_id()

    stats: dict[str, dict] = {}
    for txn in transactions:
        for line in txn.lines:
            product = products.get(line.product_id)
            if product is None:
                continue
            row = stats.setdefault(product.category, {"revenue_cents": 0, "items_sold": 0, "cost_cents": 0})
            row["revenue_cents"] += line.line_total_cents
            row["items_sold"] += line.quantity
            row["cost_cents"] += _line_cost_cents(line, products)

    rows = [
        {
            "category": category,
            "revenue_cents": row["revenue_cents"],
            "items_sold": row["items_sold"],
            "average_price_cents": round(row["revenue_cents"] / row["items_sold"]) if row["items_sold"] else 0,
            "profit_margin": _margin_pct(row["revenue_cents"], row["cost_cents"]),
        }
        for category, row in stats.items()
    ]
    rows.sort(key=lambda r: (-r["revenue_cents"], r["category"]))
    return rows


def slow_moving_products(
    *,
    days: int = 30,
    threshold: float = 0.1,
    now: datetime | None = None,
) -> list[dict]:
    """
    Products with stock on hand whose turnover (units sold in the last `days`
    divided by current stock) is below `threshold`.
    """
    now = now or utcnow()
    transactions = _completed(get_transactions_by_date_range(now - timedelta(days=days), now))

    sold: dict[str, int] = {}
    for txn in transactions:
        for line in txn.lines:
            sold[line.product_id] = sold.get(line.product_id, 0) + line.quantity

    rows = []
    for product in sorted(_products_by_id().values(), key=lambda p: (p.name, p.id)):
        stock = product.stock or 0
        if stock <= 0:
            continue
        turnover = sold.get(product.id, 0) / stock
        if turnover < threshold:
            rows.append({
                "id": product.id,
                "name": product.name,
                "current_stock": stock,
                "quantity_sold": sold.get(product.id, 0),
                "turnover": round(turnover, 4),
            })
    return rows
