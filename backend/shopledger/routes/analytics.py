from datetime import timedelta

from flask import Blueprint, jsonify, request

from shopledger.services import analytics_service
from shopledger.time_utils import parse_iso_datetime, utcnow
from shopledger.validation import ValidationError


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api")

DEFAULT_REPORT_DAYS = 30


def _report_range():
    """start/end query params; defaults to the last 30 days ending now."""
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 datetimes")
    end = end or utcnow()
    start = start or end - timedelta(days=DEFAULT_REPORT_DAYS)
    if start > end:
        raise ValidationError("start must not be after end")
    return start, end


@analytics_bp.get("/analytics/<period>")
def sales_analytics_route(period: str):
    try:
        return jsonify(analytics_service.sales_analytics(period)), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@analytics_bp.get("/inventory-alerts")
def inventory_alerts_route():
    return jsonify(analytics_service.inventory_alerts()), 200


@analytics_bp.get("/reports/summary")
def sales_summary_route():
    try:
        start, end = _report_range()
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(analytics_service.sales_summary(start, end)), 200


@analytics_bp.get("/reports/products")
def product_performance_route():
    limit = request.args.get("limit", default=10, type=int)
    try:
        start, end = _report_range()
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    if limit <= 0:
        return jsonify({"error": "limit must be > 0"}), 400
    rows = analytics_service.product_performance(start, end, limit=limit)
    return jsonify({"items": rows, "count": len(rows)}), 200


@analytics_bp.get("/reports/categories")
def category_performance_route():
    try:
        start, end = _report_range()
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    rows = analytics_service.category_performance(start, end)
    return jsonify({"items": rows, "count": len(rows)}), 200


@analytics_bp.get("/reports/slow-moving")
def slow_moving_route():
    days = request.args.get("days", default=30, type=int)
    threshold = request.args.get("threshold", default=0.1, type=float)
    if days <= 0:
        return jsonify({"error": "days must be > 0"}), 400
    rows = analytics_service.slow_moving_products(days=days, threshold=threshold)
    return jsonify({"items": rows, "count": len(rows)}), 200
