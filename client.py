import os
from typing import Any, Callable, Dict, List, Optional

import requests

from errors import ServerError, UnauthorizedError, error_for_status

BOOKKEEPING_API_URL = os.getenv("BOOKKEEPING_API_URL", "http://localhost:10000")


class BookkeepingClient:
    """Talks to the bookkeeping API on behalf of the signed-in user.

    ``token_provider`` returns the current access token, or ``None`` when no
    session exists; requests are then refused locally with
    ``UnauthorizedError`` and never sent.
    """

    def __init__(
        self,
        token_provider: Callable[[], Optional[str]],
        base_url: Optional[str] = None,
        timeout: int = 10,
    ) -> None:
        self.token_provider = token_provider
        self.base_url = (base_url or BOOKKEEPING_API_URL).rstrip("/")
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        token = self.token_provider()
        if not token:
            raise UnauthorizedError("Unauthorized")
        url = f"{self.base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        try:
            response = requests.request(
                method, url, json=payload, params=params, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise ServerError("Unable to reach the bookkeeping API") from exc
        if response.status_code >= 400:
            raise error_for_status(response.status_code, self._error_message(response))
        return response

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"Request failed ({response.status_code})"

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", path, params=params).json()

    def _create(self, path: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", path, payload=fields).json()

    def _update(self, path: str, record_id: Any, fields: Dict[str, Any]) -> None:
        self._request("PUT", path, payload={**fields, "id": record_id})

    def _delete(self, path: str, record_id: Any) -> None:
        self._request("DELETE", path, payload={"id": record_id})

    def list_products(self) -> List[Dict[str, Any]]:
        return self._get("/api/products")

    def list_product_catalog(self) -> List[Dict[str, Any]]:
        return self._get("/api/products", params={"full": 1})

    def get_product(self, product_id: Any) -> Dict[str, Any]:
        return self._get(f"/api/products/{product_id}")

    def add_product(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._create("/api/products", fields)

    def update_product(self, product_id: Any, fields: Dict[str, Any]) -> None:
        self._update("/api/products", product_id, fields)

    def delete_product(self, product_id: Any) -> None:
        self._delete("/api/products", product_id)

    def list_sales(self) -> List[Dict[str, Any]]:
        return self._get("/api/sales")

    def add_sale(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._create("/api/sales", fields)

    def update_sale(self, sale_id: Any, fields: Dict[str, Any]) -> None:
        self._update("/api/sales", sale_id, fields)

    def delete_sale(self, sale_id: Any) -> None:
        self._delete("/api/sales", sale_id)

    def list_purchases(self) -> List[Dict[str, Any]]:
        return self._get("/api/purchases")

    def add_purchase(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._create("/api/purchases", fields)

    def update_purchase(self, purchase_id: Any, fields: Dict[str, Any]) -> None:
        self._update("/api/purchases", purchase_id, fields)

    def delete_purchase(self, purchase_id: Any) -> None:
        self._delete("/api/purchases", purchase_id)

    def list_expenses(self) -> List[Dict[str, Any]]:
        return self._get("/api/exxpenses")

    def add_expense(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._create("/api/exxpenses", fields)

    def update_expense(self, expense_id: Any, fields: Dict[str, Any]) -> None:
        self._update("/api/exxpenses", expense_id, fields)

    def delete_expense(self, expense_id: Any) -> None:
        self._delete("/api/exxpenses", expense_id)

    def list_expense_categories(self) -> List[Dict[str, Any]]:
        return self._get("/api/expense-categories")

    def add_expense_category(self, name: str) -> Dict[str, Any]:
        return self._create("/api/expense-categories", {"name": name})

    def rename_expense_category(self, category_id: Any, name: str) -> None:
        self._update("/api/expense-categories", category_id, {"name": name})

    def delete_expense_category(self, category_id: Any) -> None:
        self._delete("/api/expense-categories", category_id)

    def profit_report(self, days: int) -> Dict[str, Any]:
        return self._get("/api/reports/profit", params={"days": days})

    def export_profit_report(self, days: int) -> str:
        return self._request("GET", "/api/reports/profit.csv", params={"days": days}).text

    def refresh_profit_summary(self) -> str:
        return self._request("POST", "/api/reports/refresh").json().get("message", "")

    def dashboard(self) -> Dict[str, Any]:
        return self._get("/api/dashboard")

    def profile(self) -> Dict[str, Any]:
        return self._get("/api/profile")
