from dataclasses import asdict, dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from formatters import currency, iso_date, parse_date

FEED_LIMIT = 5


class TransactionType(Enum):
    SALE = "Sale"
    PURCHASE = "Purchase"
    EXPENSE = "Expense"


@dataclass(frozen=True)
class Transaction:
    date: str
    type: TransactionType
    item: str
    amount: str

    @property
    def sort_key(self) -> date:
        return parse_date(self.date) or date.min

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


def _from_sale(row: Mapping[str, Any]) -> Transaction:
    return Transaction(
        date=iso_date(row.get("date")),
        type=TransactionType.SALE,
        item=row.get("product_name") or "Product",
        amount=currency(row.get("total_sales")),
    )


def _from_purchase(row: Mapping[str, Any]) -> Transaction:
    return Transaction(
        date=iso_date(row.get("date")),
        type=TransactionType.PURCHASE,
        item=row.get("product_name") or "Product",
        amount=currency(row.get("total_cost")),
    )


def _from_expense(row: Mapping[str, Any]) -> Transaction:
    return Transaction(
        date=iso_date(row.get("expense_date")),
        type=TransactionType.EXPENSE,
        item=row.get("description") or "",
        amount=currency(row.get("amount")),
    )


MAPPERS: Dict[TransactionType, Callable[[Mapping[str, Any]], Transaction]] = {
    TransactionType.SALE: _from_sale,
    TransactionType.PURCHASE: _from_purchase,
    TransactionType.EXPENSE: _from_expense,
}


def to_transactions(kind: TransactionType, rows: Iterable[Mapping[str, Any]]) -> List[Transaction]:
    mapper = MAPPERS[kind]
    return [mapper(row) for row in rows]


def build_feed(
    sales: Iterable[Mapping[str, Any]],
    purchases: Iterable[Mapping[str, Any]],
    expenses: Iterable[Mapping[str, Any]],
    limit: Optional[int] = FEED_LIMIT,
) -> List[Transaction]:
    """Merge recent sales, purchases and expenses newest first.

    Entries without a date are dropped. Equal dates keep concatenation
    order: sales, then purchases, then expenses.
    """
    merged = (
        to_transactions(TransactionType.SALE, sales)
        + to_transactions(TransactionType.PURCHASE, purchases)
        + to_transactions(TransactionType.EXPENSE, expenses)
    )
    dated = [entry for entry in merged if entry.date]
    ordered = sorted(dated, key=lambda entry: entry.sort_key, reverse=True)
    if limit is None:
        return ordered
    return ordered[:limit]
