import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2.extras import RealDictCursor
from dotenv import load_dotenv

import validation
from errors import ConflictError, NotFoundError, ValidationError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_MESSAGE = "Profit summaries refreshed!"


def _connection_params() -> Dict[str, Any]:
    return {
        "user": os.getenv("DB_USER"),
        "password": os.getenv("DB_PASSWORD"),
        "host": os.getenv("DB_HOST", "localhost"),
        "port": os.getenv("DB_PORT", "5432"),
        "dbname": os.getenv("DB_NAME"),
    }


def _database_url() -> Optional[str]:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    return None


def get_connection():
    url = _database_url()
    if url:
        extra_kwargs: Dict[str, Any] = {}
        sslmode = os.getenv("DB_SSLMODE", "require")
        if sslmode and "sslmode=" not in url:
            extra_kwargs["sslmode"] = sslmode
        return psycopg2.connect(url, **extra_kwargs)

    params = _connection_params()
    missing = [key for key, value in params.items() if not value]
    if missing:
        raise RuntimeError(f"Missing database configuration for: {', '.join(missing)}")
    return psycopg2.connect(**params)


@contextmanager
def connection_cursor(commit: bool = False):
    conn = get_connection()
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            yield cur
            if commit:
                conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


PRODUCT_COLUMNS = "id, name, cost_price, selling_price, stock_quantity, created_at"
PURCHASE_COLUMNS = "id, product_id, quantity, total_cost, date, created_at"
SALE_COLUMNS = "id, product_id, quantity, total_sales, date, created_at"
EXPENSE_COLUMNS = "id, description, amount, expense_date, category_id, created_at"


class Database:
    """Data gateway over the hosted Postgres store.

    The service connection bypasses row-level security, so every statement
    here filters by ``user_id`` and every mutation filters by both the
    record id and ``user_id``.
    """

    # Products

    def list_products(self, user_id: str, full: bool = False) -> List[Dict[str, Any]]:
        columns = PRODUCT_COLUMNS if full else "id, name"
        with connection_cursor() as cur:
            cur.execute(
                f"SELECT {columns} FROM products WHERE user_id = %s ORDER BY name",
                (user_id,),
            )
            return [dict(row) for row in cur.fetchall()]

    def get_product(self, user_id: str, product_id: str) -> Dict[str, Any]:
        with connection_cursor() as cur:
            cur.execute(
                f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = %s AND user_id = %s",
                (product_id, user_id),
            )
            row = cur.fetchone()
        if not row:
            raise NotFoundError("Product not found")
        return dict(row)

    def add_product(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        values = validation.clean_payload(validation.PRODUCT, payload)
        with connection_cursor(commit=True) as cur:
            cur.execute(
                f"""
                INSERT INTO products (name, cost_price, selling_price, stock_quantity, user_id)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING {PRODUCT_COLUMNS}
                """,
                [
                    values["name"],
                    values["cost_price"],
                    values["selling_price"],
                    values["stock_quantity"],
                    user_id,
                ],
            )
            return dict(cur.fetchone())

    def update_product(self, user_id: str, product_id: str, payload: Dict[str, Any]) -> None:
        values = validation.clean_payload(validation.PRODUCT, payload, partial=True)
        self._update_owned("products", "product", user_id, product_id, values)

    def delete_product(self, user_id: str, product_id: str) -> None:
        self._delete_owned("products", "product", user_id, product_id)

    # Sales

    def list_sales(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        sql = """
            SELECT s.id, s.product_id, p.name AS product_name, s.quantity,
                   s.total_sales, s.date, s.created_at
            FROM sales s
            LEFT JOIN products p ON p.id = s.product_id
            WHERE s.user_id = %s
            ORDER BY s.date DESC, s.id DESC
        """
        return self._fetch_all(sql, user_id, limit)

    def add_sale(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        values = validation.clean_payload(validation.SALE, payload)
        quantity = values["quantity"]
        with connection_cursor(commit=True) as cur:
            product = self._locked_product(cur, user_id, values["product_id"])
            stock = int(product["stock_quantity"] or 0)
            if stock <= 0:
                raise ValidationError(f'"{product["name"]}" is out of stock', field="quantity")
            if quantity > stock:
                raise ValidationError(
                    f'Cannot record sale. Only {stock} units of "{product["name"]}" available.',
                    field="quantity",
                )
            total_sales = product["selling_price"] * quantity
            cur.execute(
                f"""
                INSERT INTO sales (product_id, quantity, total_sales, date, user_id)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING {SALE_COLUMNS}
                """,
                [values["product_id"], quantity, total_sales, values["date"], user_id],
            )
            sale = dict(cur.fetchone())
        sale["product_name"] = product["name"]
        return sale

    def update_sale(self, user_id: str, sale_id: str, payload: Dict[str, Any]) -> None:
        values = validation.clean_payload(validation.SALE, payload, partial=True)
        if "quantity" not in values and "product_id" not in values:
            self._update_owned("sales", "sale", user_id, sale_id, values)
            return
        with connection_cursor(commit=True) as cur:
            cur.execute(
                "SELECT product_id, quantity FROM sales WHERE id = %s AND user_id = %s",
                (sale_id, user_id),
            )
            current = cur.fetchone()
            if not current:
                raise NotFoundError("Sale not found")
            product_id = values.get("product_id", current["product_id"])
            quantity = values.get("quantity", current["quantity"])
            product = self._locked_product(cur, user_id, product_id)
            values["total_sales"] = product["selling_price"] * quantity
            self._execute_update(cur, "sales", "sale", user_id, sale_id, values)

    def delete_sale(self, user_id: str, sale_id: str) -> None:
        self._delete_owned("sales", "sale", user_id, sale_id)

    # Purchases

    def list_purchases(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        sql = """
            SELECT pu.id, pu.product_id, p.name AS product_name, pu.quantity,
                   pu.total_cost, pu.date, pu.created_at
            FROM purchases pu
            LEFT JOIN products p ON p.id = pu.product_id
            WHERE pu.user_id = %s
            ORDER BY pu.date DESC, pu.id DESC
        """
        return self._fetch_all(sql, user_id, limit)

    def add_purchase(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        values = validation.clean_payload(validation.PURCHASE, payload)
        with connection_cursor(commit=True) as cur:
            self._require_owned(cur, "products", "Product", user_id, values["product_id"])
            cur.execute(
                f"""
                INSERT INTO purchases (product_id, quantity, total_cost, date, user_id)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING {PURCHASE_COLUMNS}
                """,
                [
                    values["product_id"],
                    values["quantity"],
                    values["total_cost"],
                    values["date"],
                    user_id,
                ],
            )
            return dict(cur.fetchone())

    def update_purchase(self, user_id: str, purchase_id: str, payload: Dict[str, Any]) -> None:
        values = validation.clean_payload(validation.PURCHASE, payload, partial=True)
        with connection_cursor(commit=True) as cur:
            if "product_id" in values:
                self._require_owned(cur, "products", "Product", user_id, values["product_id"])
            self._execute_update(cur, "purchases", "purchase", user_id, purchase_id, values)

    def delete_purchase(self, user_id: str, purchase_id: str) -> None:
        self._delete_owned("purchases", "purchase", user_id, purchase_id)

    # Expenses

    def list_expenses(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        sql = """
            SELECT e.id, e.description, e.amount, e.expense_date, e.category_id,
                   COALESCE(c.name, 'Uncategorized') AS category_name, e.created_at
            FROM expenses e
            LEFT JOIN expense_categories c ON c.id = e.category_id
            WHERE e.user_id = %s
            ORDER BY e.expense_date DESC, e.id DESC
        """
        return self._fetch_all(sql, user_id, limit)

    def add_expense(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        values = validation.clean_payload(validation.EXPENSE, payload)
        with connection_cursor(commit=True) as cur:
            if values["category_id"] is not None:
                self._require_owned(
                    cur, "expense_categories", "Category", user_id, values["category_id"]
                )
            cur.execute(
                f"""
                INSERT INTO expenses (description, amount, category_id, expense_date, user_id)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING {EXPENSE_COLUMNS}
                """,
                [
                    values["description"],
                    values["amount"],
                    values["category_id"],
                    values["expense_date"],
                    user_id,
                ],
            )
            return dict(cur.fetchone())

    def update_expense(self, user_id: str, expense_id: str, payload: Dict[str, Any]) -> None:
        values = validation.clean_payload(validation.EXPENSE, payload, partial=True)
        with connection_cursor(commit=True) as cur:
            if values.get("category_id") is not None:
                self._require_owned(
                    cur, "expense_categories", "Category", user_id, values["category_id"]
                )
            self._execute_update(cur, "expenses", "expense", user_id, expense_id, values)

    def delete_expense(self, user_id: str, expense_id: str) -> None:
        self._delete_owned("expenses", "expense", user_id, expense_id)

    # Expense categories

    def list_expense_categories(self, user_id: str) -> List[Dict[str, Any]]:
        with connection_cursor() as cur:
            cur.execute(
                "SELECT id, name FROM expense_categories WHERE user_id = %s ORDER BY name",
                (user_id,),
            )
            return [dict(row) for row in cur.fetchall()]

    def add_expense_category(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        values = validation.clean_payload(validation.EXPENSE_CATEGORY, payload)
        try:
            with connection_cursor(commit=True) as cur:
                cur.execute(
                    "SELECT id FROM expense_categories WHERE user_id = %s AND name = %s",
                    (user_id, values["name"]),
                )
                if cur.fetchone():
                    raise ConflictError("Category already exists", field="name")
                cur.execute(
                    """
                    INSERT INTO expense_categories (name, user_id)
                    VALUES (%s, %s)
                    RETURNING id, name, user_id
                    """,
                    (values["name"], user_id),
                )
                return dict(cur.fetchone())
        except pg_errors.UniqueViolation:
            raise ConflictError("Category already exists", field="name") from None

    def update_expense_category(self, user_id: str, category_id: int, payload: Dict[str, Any]) -> None:
        values = validation.clean_payload(validation.EXPENSE_CATEGORY, payload)
        try:
            with connection_cursor(commit=True) as cur:
                cur.execute(
                    """
                    SELECT id FROM expense_categories
                    WHERE user_id = %s AND name = %s AND id <> %s
                    """,
                    (user_id, values["name"], category_id),
                )
                if cur.fetchone():
                    raise ConflictError("Category name already exists", field="name")
                self._execute_update(
                    cur, "expense_categories", "category", user_id, category_id, values
                )
        except pg_errors.UniqueViolation:
            raise ConflictError("Category name already exists", field="name") from None

    def delete_expense_category(self, user_id: str, category_id: int) -> None:
        self._delete_owned("expense_categories", "category", user_id, category_id)

    # Reporting reads

    def list_profit_summary(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        sql = """
            SELECT day, total_sales, total_purchases, total_expenses,
                   net_profit, profit_margin_percent
            FROM profit_summary
            WHERE user_id = %s
            ORDER BY day DESC
        """
        return self._fetch_all(sql, user_id, limit)

    def latest_profit_summary(self, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self.list_profit_summary(user_id, limit=1)
        return rows[0] if rows else None

    def refresh_profit_summary(self) -> str:
        with connection_cursor(commit=True) as cur:
            cur.execute("SELECT manual_refresh_profit_data() AS message")
            row = cur.fetchone()
        message = row["message"] if row else None
        logger.info("Profit summary rollup refreshed")
        return message or DEFAULT_REFRESH_MESSAGE

    def get_display_name(self, user_id: str) -> Optional[str]:
        with connection_cursor() as cur:
            cur.execute("SELECT display_name FROM profiles WHERE id = %s", (user_id,))
            row = cur.fetchone()
        if not row:
            return None
        return row["display_name"]

    # Helpers

    def _fetch_all(self, sql: str, user_id: str, limit: Optional[int]) -> List[Dict[str, Any]]:
        params: List[Any] = [user_id]
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))
        with connection_cursor() as cur:
            cur.execute(sql, params)
            return [dict(row) for row in cur.fetchall()]

    def _locked_product(self, cur, user_id: str, product_id: str) -> Dict[str, Any]:
        cur.execute(
            """
            SELECT id, name, selling_price, stock_quantity
            FROM products
            WHERE id = %s AND user_id = %s
            FOR UPDATE
            """,
            (product_id, user_id),
        )
        row = cur.fetchone()
        if not row:
            raise ValidationError("Product not found", field="product_id")
        return dict(row)

    def _require_owned(self, cur, table: str, label: str, user_id: str, record_id: Any) -> None:
        cur.execute(f"SELECT id FROM {table} WHERE id = %s AND user_id = %s", (record_id, user_id))
        if not cur.fetchone():
            raise ValidationError(f"{label} not found", field=f"{label.lower()}_id")

    def _update_owned(
        self, table: str, entity: str, user_id: str, record_id: Any, values: Dict[str, Any]
    ) -> None:
        with connection_cursor(commit=True) as cur:
            self._execute_update(cur, table, entity, user_id, record_id, values)

    def _execute_update(
        self, cur, table: str, entity: str, user_id: str, record_id: Any, values: Dict[str, Any]
    ) -> None:
        if not values:
            raise ValidationError("No fields to update")
        assignments = ", ".join(f"{column} = %s" for column in values)
        cur.execute(
            f"UPDATE {table} SET {assignments} WHERE id = %s AND user_id = %s",
            [*values.values(), record_id, user_id],
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"{entity.capitalize()} not found")

    def _delete_owned(self, table: str, entity: str, user_id: str, record_id: Any) -> None:
        with connection_cursor(commit=True) as cur:
            cur.execute(
                f"DELETE FROM {table} WHERE id = %s AND user_id = %s",
                (record_id, user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"{entity.capitalize()} not found")
