import os
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from functools import wraps
from typing import Any, Dict

from flask import Flask, Response, g, jsonify, request
from flask.json.provider import DefaultJSONProvider
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from database import Database
from errors import BookkeepingError, ValidationError
import reporting
import supabase_auth
import transactions
import validation

load_dotenv()


class BookkeepingJSONProvider(DefaultJSONProvider):
    @staticmethod
    def default(o: Any) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, date):
            return o.isoformat()
        if isinstance(o, Decimal):
            return float(o)
        if isinstance(o, Enum):
            return o.value
        return DefaultJSONProvider.default(o)


app = Flask(__name__)
app.config["SECRET_KEY"] = os.getenv("FLASK_SECRET_KEY", "dev-secret")
app.json = BookkeepingJSONProvider(app)

db = Database()

RECENT_LIMIT = transactions.FEED_LIMIT


def require_user(view):
    """Resolve the bearer token to a user and expose its id as ``g.user_id``."""

    @wraps(view)
    def decorated(*args, **kwargs):
        token = supabase_auth.extract_bearer_token(request.headers.get("Authorization"))
        if not token:
            return jsonify({"error": "Unauthorized"}), 401
        try:
            user = supabase_auth.get_user(token)
        except supabase_auth.AuthServiceError as exc:
            app.logger.error("Token check failed: %s", exc)
            return jsonify({"error": str(exc)}), 500
        if not user:
            return jsonify({"error": "Unauthorized"}), 401
        g.user = user
        g.user_id = user["id"]
        return view(*args, **kwargs)

    return decorated


@app.errorhandler(BookkeepingError)
def handle_bookkeeping_error(exc: BookkeepingError):
    if exc.status_code >= 500:
        app.logger.error("%s %s failed: %s", request.method, request.path, exc.message)
    return jsonify({"error": exc.message}), exc.status_code


@app.errorhandler(HTTPException)
def handle_http_error(exc: HTTPException):
    return jsonify({"error": exc.description}), exc.code


@app.errorhandler(Exception)
def handle_unexpected_error(exc: Exception):
    app.logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"error": str(exc) or "Internal server error"}), 500


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")
    return payload


def _body_with_id(entity: str):
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")
    raw_id = payload.get("id", request.args.get("id"))
    if entity == "category":
        record_id = validation.parse_category_id(raw_id)
    else:
        record_id = validation.parse_record_id(raw_id, entity)
    fields = {key: value for key, value in payload.items() if key != "id"}
    return record_id, fields


def _success() -> Response:
    return jsonify({"success": True})


# Expense categories


@app.get("/api/expense-categories")
@require_user
def list_expense_categories():
    return jsonify(db.list_expense_categories(g.user_id))


@app.post("/api/expense-categories")
@require_user
def create_expense_category():
    row = db.add_expense_category(g.user_id, _json_body())
    app.logger.info("Created expense category %s", row.get("id"))
    return jsonify(row), 201


@app.put("/api/expense-categories")
@require_user
def update_expense_category():
    category_id, fields = _body_with_id("category")
    db.update_expense_category(g.user_id, category_id, fields)
    return _success()


@app.delete("/api/expense-categories")
@require_user
def delete_expense_category():
    category_id, _ = _body_with_id("category")
    db.delete_expense_category(g.user_id, category_id)
    return _success()


# Expenses


@app.get("/api/exxpenses")
@app.get("/api/expenses")
@require_user
def list_expenses():
    return jsonify(db.list_expenses(g.user_id))


@app.post("/api/exxpenses")
@app.post("/api/expenses")
@require_user
def create_expense():
    row = db.add_expense(g.user_id, _json_body())
    app.logger.info("Recorded expense %s", row.get("id"))
    return jsonify(row), 201


@app.put("/api/exxpenses")
@app.put("/api/expenses")
@require_user
def update_expense():
    expense_id, fields = _body_with_id("expense")
    db.update_expense(g.user_id, expense_id, fields)
    return _success()


@app.delete("/api/exxpenses")
@app.delete("/api/expenses")
@require_user
def delete_expense():
    expense_id, _ = _body_with_id("expense")
    db.delete_expense(g.user_id, expense_id)
    return _success()


# Products


@app.get("/api/products")
@require_user
def list_products():
    full = request.args.get("full", "").strip().lower() in ("1", "true", "yes")
    return jsonify(db.list_products(g.user_id, full=full))


@app.get("/api/products/<product_id>")
@require_user
def get_product(product_id: str):
    return jsonify(db.get_product(g.user_id, validation.parse_record_id(product_id, "product")))


@app.post("/api/products")
@require_user
def create_product():
    row = db.add_product(g.user_id, _json_body())
    app.logger.info("Created product %s", row.get("id"))
    return jsonify(row), 201


@app.put("/api/products")
@require_user
def update_product():
    product_id, fields = _body_with_id("product")
    db.update_product(g.user_id, product_id, fields)
    return _success()


@app.delete("/api/products")
@require_user
def delete_product():
    product_id, _ = _body_with_id("product")
    db.delete_product(g.user_id, product_id)
    return _success()


# Purchases


@app.get("/api/purchases")
@require_user
def list_purchases():
    return jsonify(db.list_purchases(g.user_id))


@app.post("/api/purchases")
@require_user
def create_purchase():
    row = db.add_purchase(g.user_id, _json_body())
    app.logger.info("Recorded purchase %s", row.get("id"))
    return jsonify(row), 201


@app.put("/api/purchases")
@require_user
def update_purchase():
    purchase_id, fields = _body_with_id("purchase")
    db.update_purchase(g.user_id, purchase_id, fields)
    return _success()


@app.delete("/api/purchases")
@require_user
def delete_purchase():
    purchase_id, _ = _body_with_id("purchase")
    db.delete_purchase(g.user_id, purchase_id)
    return _success()


# Sales


@app.get("/api/sales")
@require_user
def list_sales():
    return jsonify(db.list_sales(g.user_id))


@app.post("/api/sales")
@require_user
def create_sale():
    row = db.add_sale(g.user_id, _json_body())
    app.logger.info("Recorded sale %s", row.get("id"))
    return jsonify(row), 201


@app.put("/api/sales")
@require_user
def update_sale():
    sale_id, fields = _body_with_id("sale")
    db.update_sale(g.user_id, sale_id, fields)
    return _success()


@app.delete("/api/sales")
@require_user
def delete_sale():
    sale_id, _ = _body_with_id("sale")
    db.delete_sale(g.user_id, sale_id)
    return _success()


# Reports


@app.get("/api/reports/profit")
@require_user
def profit_report():
    days = validation.parse_window(request.args.get("days"))
    rows = db.list_profit_summary(g.user_id)
    return jsonify(reporting.build_report(rows, days))


@app.get("/api/reports/profit.csv")
@require_user
def export_profit_report():
    days = validation.parse_window(request.args.get("days"))
    rows = reporting.filter_by_window(db.list_profit_summary(g.user_id), days)
    body = reporting.export_csv(rows)
    return Response(
        body,
        mimetype="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={reporting.report_filename()}"
        },
    )


@app.post("/api/reports/refresh")
@require_user
def refresh_profit_summary():
    message = db.refresh_profit_summary()
    return jsonify({"message": message})


@app.get("/api/profile")
@require_user
def profile():
    display_name = db.get_display_name(g.user_id) or g.user.get("display_name")
    return jsonify({"id": g.user_id, "display_name": display_name})


@app.get("/api/dashboard")
@require_user
def dashboard():
    latest = db.latest_profit_summary(g.user_id) or {}
    feed = transactions.build_feed(
        db.list_sales(g.user_id, limit=RECENT_LIMIT),
        db.list_purchases(g.user_id, limit=RECENT_LIMIT),
        db.list_expenses(g.user_id, limit=RECENT_LIMIT),
    )
    display_name = db.get_display_name(g.user_id) or g.user.get("display_name") or "User"
    return jsonify(
        {
            "display_name": display_name,
            "summary": {
                "total_sales": latest.get("total_sales") or 0,
                "total_purchases": latest.get("total_purchases") or 0,
                "total_expenses": latest.get("total_expenses") or 0,
                "net_profit": latest.get("net_profit") or 0,
                "day": latest.get("day"),
            },
            "transactions": [entry.to_dict() for entry in feed],
        }
    )


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", 10000)), debug=True)
