"""In-memory view models behind the bookkeeping screens.

Each view keeps the rows of its last full fetch; searching and pagination
happen over that list. Every action converts failures into notifications
and leaves previously loaded rows untouched.
"""

import math
import time
import uuid
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import reporting
from client import BookkeepingClient
from errors import BookkeepingError, ConflictError, UnauthorizedError, ValidationError
from formatters import iso_date
from notifications import Notifier
from session import DisplayNameCache

DEFAULT_PAGE_SIZE = 10
RECONCILE_DELAY_SECONDS = 0.3


class RecordList:
    def __init__(
        self,
        fetch: Callable[[], Iterable[Dict[str, Any]]],
        search_fields: Sequence[str] = (),
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._fetch = fetch
        self.search_fields = tuple(search_fields)
        self.page_size = page_size
        self.rows: List[Dict[str, Any]] = []

    def load(self) -> List[Dict[str, Any]]:
        self.rows = list(self._fetch())
        return self.rows

    def prepend(self, row: Dict[str, Any]) -> None:
        self.rows = [row] + self.rows

    def remove(self, record_id: Any) -> None:
        self.rows = [row for row in self.rows if row.get("id") != record_id]

    def search(self, query: str = "") -> List[Dict[str, Any]]:
        needle = (query or "").strip().lower()
        if not needle:
            return list(self.rows)
        return [
            row
            for row in self.rows
            if any(needle in str(row.get(key, "")).lower() for key in self.search_fields)
        ]

    def page(self, number: int = 1, query: str = "") -> List[Dict[str, Any]]:
        start = (max(number, 1) - 1) * self.page_size
        return self.search(query)[start:start + self.page_size]

    def page_count(self, query: str = "") -> int:
        return math.ceil(len(self.search(query)) / self.page_size)


class BookView:
    def __init__(
        self,
        client: BookkeepingClient,
        notifier: Notifier,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ) -> None:
        self.client = client
        self.notifier = notifier
        self.on_unauthorized = on_unauthorized

    def _attempt(self, action: Callable[[], Any], success_message: Optional[str] = None) -> bool:
        try:
            action()
        except UnauthorizedError as exc:
            self.notifier.error(exc.message, title="Session expired")
            if self.on_unauthorized is not None:
                self.on_unauthorized()
            return False
        except ConflictError as exc:
            self.notifier.error(exc.message, title="Already exists")
            return False
        except ValidationError as exc:
            self.notifier.error(exc.message, title="Invalid input")
            return False
        except BookkeepingError as exc:
            self.notifier.error(exc.message or "Something went wrong")
            return False
        if success_message:
            self.notifier.success(success_message)
        return True


class ProductCatalog(BookView):
    def __init__(self, client: BookkeepingClient, notifier: Notifier, **kwargs) -> None:
        super().__init__(client, notifier, **kwargs)
        self.records = RecordList(client.list_product_catalog, search_fields=("name",))

    def refresh(self) -> bool:
        return self._attempt(self.records.load)

    def add_product(self, fields: Dict[str, Any]) -> bool:
        def action():
            self.client.add_product(fields)
            self.records.load()

        return self._attempt(action, "Product added successfully")

    def update_product(self, product_id: Any, fields: Dict[str, Any]) -> bool:
        def action():
            self.client.update_product(product_id, fields)
            self.records.load()

        return self._attempt(action, "Product updated")

    def delete_product(self, product_id: Any) -> bool:
        def action():
            self.client.delete_product(product_id)
            self.records.remove(product_id)

        return self._attempt(action, "Product deleted successfully")


class SalesBook(BookView):
    def __init__(
        self,
        client: BookkeepingClient,
        notifier: Notifier,
        reconcile_delay: float = RECONCILE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        **kwargs,
    ) -> None:
        super().__init__(client, notifier, **kwargs)
        self.records = RecordList(
            client.list_sales, search_fields=("product_name", "quantity", "total_sales")
        )
        self.reconcile_delay = reconcile_delay
        self._sleep = sleep
        self.stats = reporting.sales_stats([])

    def _recalculate(self) -> None:
        self.stats = reporting.sales_stats(self.records.rows)

    def _reload(self) -> None:
        self.records.load()
        self._recalculate()

    def refresh(self) -> bool:
        return self._attempt(self._reload)

    def add_sale(self, product_id: Any, quantity: Optional[int], sale_date: Optional[date] = None) -> bool:
        """Record a sale after checking stock, then reconcile with the server.

        The stock check happens before anything is submitted. Once the
        server accepts the sale a placeholder row (``total_sales`` 0) is
        shown until the refetch after ``reconcile_delay`` replaces it.
        """
        if not product_id or not quantity:
            self.notifier.error("All fields are required", title="Invalid input")
            return False
        sale_date = sale_date or date.today()

        def action():
            product = self.client.get_product(product_id)
            stock = int(product.get("stock_quantity") or 0)
            name = product.get("name")
            if stock <= 0:
                raise ValidationError(f'"{name}" is out of stock', field="quantity")
            if quantity > stock:
                raise ValidationError(
                    f'Cannot record sale. Only {stock} units of "{name}" available.',
                    field="quantity",
                )
            self.client.add_sale(
                {"product_id": product_id, "quantity": quantity, "date": iso_date(sale_date)}
            )
            self.records.prepend(
                {
                    "id": str(uuid.uuid4()),
                    "product_id": product_id,
                    "product_name": name,
                    "quantity": quantity,
                    "total_sales": 0,
                    "date": iso_date(sale_date),
                    "created_at": datetime.now().isoformat(),
                }
            )
            self._recalculate()

        if not self._attempt(action, "Sale recorded successfully"):
            return False
        self._sleep(self.reconcile_delay)
        self.refresh()
        return True

    def update_sale(self, sale_id: Any, fields: Dict[str, Any]) -> bool:
        def action():
            self.client.update_sale(sale_id, fields)
            self._reload()

        return self._attempt(action, "Sale updated")

    def delete_sale(self, sale_id: Any) -> bool:
        def action():
            self.client.delete_sale(sale_id)
            self.records.remove(sale_id)
            self._recalculate()

        return self._attempt(action, "Sale deleted successfully")


class PurchaseBook(BookView):
    def __init__(self, client: BookkeepingClient, notifier: Notifier, **kwargs) -> None:
        super().__init__(client, notifier, **kwargs)
        self.records = RecordList(
            client.list_purchases, search_fields=("product_name", "quantity", "total_cost")
        )

    def refresh(self) -> bool:
        return self._attempt(self.records.load)

    def add_purchase(
        self, product_id: Any, quantity: Optional[int], total_cost: Any, purchase_date: Optional[date] = None
    ) -> bool:
        if not product_id or not quantity:
            self.notifier.error("Please fill all required fields", title="Invalid input")
            return False
        fields = {
            "product_id": product_id,
            "quantity": quantity,
            "total_cost": total_cost,
            "date": iso_date(purchase_date or date.today()),
        }

        def action():
            self.client.add_purchase(fields)
            self.records.load()

        return self._attempt(action, "Purchase recorded successfully")

    def update_purchase(self, purchase_id: Any, fields: Dict[str, Any]) -> bool:
        def action():
            self.client.update_purchase(purchase_id, fields)
            self.records.load()

        return self._attempt(action, "Purchase updated")

    def delete_purchase(self, purchase_id: Any) -> bool:
        def action():
            self.client.delete_purchase(purchase_id)
            self.records.remove(purchase_id)

        return self._attempt(action, "Purchase deleted successfully")


class ExpenseBook(BookView):
    def __init__(self, client: BookkeepingClient, notifier: Notifier, **kwargs) -> None:
        super().__init__(client, notifier, **kwargs)
        self.records = RecordList(
            client.list_expenses, search_fields=("description", "category_name", "amount")
        )
        self.categories = RecordList(client.list_expense_categories, search_fields=("name",))
        self.stats = reporting.expense_stats([])

    def _recalculate(self) -> None:
        self.stats = reporting.expense_stats(self.records.rows)

    def _reload(self) -> None:
        self.records.load()
        self._recalculate()

    def refresh(self) -> bool:
        def action():
            self.categories.load()
            self._reload()

        return self._attempt(action)

    def filter(self, category_id: Optional[int] = None, query: str = "") -> List[Dict[str, Any]]:
        rows = self.records.search(query)
        if category_id is None:
            return rows
        return [row for row in rows if row.get("category_id") == category_id]

    def add_category(self, name: str) -> bool:
        def action():
            self.client.add_expense_category(name)
            self.categories.load()

        return self._attempt(action, "Category added")

    def rename_category(self, category_id: Any, name: str) -> bool:
        def action():
            self.client.rename_expense_category(category_id, name)
            self.categories.load()
            self._reload()

        return self._attempt(action, "Category updated")

    def delete_category(self, category_id: Any) -> bool:
        def action():
            self.client.delete_expense_category(category_id)
            self.categories.remove(category_id)
            self._reload()

        return self._attempt(action, "Category deleted")

    def add_expense(
        self,
        description: str,
        amount: Any,
        category_id: Optional[int] = None,
        expense_date: Optional[date] = None,
    ) -> bool:
        fields = {
            "description": description,
            "amount": amount,
            "category_id": category_id,
            "expense_date": iso_date(expense_date or date.today()),
        }

        def action():
            self.client.add_expense(fields)
            self._reload()

        return self._attempt(action, "Expense added successfully")

    def update_expense(self, expense_id: Any, fields: Dict[str, Any]) -> bool:
        def action():
            self.client.update_expense(expense_id, fields)
            self._reload()

        return self._attempt(action, "Expense updated")

    def delete_expense(self, expense_id: Any) -> bool:
        def action():
            self.client.delete_expense(expense_id)
            self.records.remove(expense_id)
            self._recalculate()

        return self._attempt(action, "Expense deleted successfully")


class ReportView(BookView):
    def __init__(self, client: BookkeepingClient, notifier: Notifier, **kwargs) -> None:
        super().__init__(client, notifier, **kwargs)
        self.report: Dict[str, Any] = {}

    def load(self, days: int = 30) -> bool:
        def action():
            self.report = self.client.profit_report(days)

        return self._attempt(action)

    def export(self, days: int = 30) -> Optional[Dict[str, str]]:
        exported: Dict[str, str] = {}

        def action():
            exported["filename"] = reporting.report_filename()
            exported["content"] = self.client.export_profit_report(days)

        if not self._attempt(action):
            return None
        return exported

    def refresh_rollup(self) -> bool:
        def action():
            message = self.client.refresh_profit_summary()
            self.notifier.success(message or "Profit summaries refreshed!")

        return self._attempt(action)


class DashboardView(BookView):
    def __init__(
        self,
        client: BookkeepingClient,
        notifier: Notifier,
        name_cache: Optional[DisplayNameCache] = None,
        **kwargs,
    ) -> None:
        super().__init__(client, notifier, **kwargs)
        self.name_cache = name_cache
        self.summary: Dict[str, Any] = {}
        self.transactions: List[Dict[str, Any]] = []
        self.display_name = "User"

    def _fetch(self) -> Dict[str, Any]:
        data = self.client.dashboard()
        self.summary = data.get("summary") or {}
        self.transactions = data.get("transactions") or []
        return data

    def load(self, user_id: Optional[str] = None) -> bool:
        def action():
            data = self._fetch()
            if self.name_cache is not None and user_id:
                self.display_name = self.name_cache.get(user_id)
            else:
                self.display_name = data.get("display_name") or "User"

        return self._attempt(action)

    def refresh_rollup(self) -> bool:
        def action():
            message = self.client.refresh_profit_summary()
            self.notifier.success(message or "Profit summaries updated!")
            self._fetch()

        return self._attempt(action)
