"""Summary statistics and profit/loss reporting over fetched rows.

Everything here is pure: rows come from the gateway, results go to the
HTTP layer or a view. The daily ``profit_summary`` rollup is computed by
the store and only read here.
"""

import csv
import io
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from formatters import format_number, iso_date, parse_date, short_date, to_decimal

CSV_HEADER = ["Date", "Sales", "Purchases", "Expenses", "Net Profit", "Margin %"]

_ZERO = Decimal("0")
_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class Stats:
    total: Decimal
    count: int
    average: Decimal
    today_total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProfitTotals:
    total_revenue: Decimal
    total_costs: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    profit_margin: Decimal
    average_daily_profit: Decimal
    row_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize(
    records: Iterable[Mapping[str, Any]],
    amount_field: str = "amount",
    date_field: str = "date",
    today: Optional[date] = None,
) -> Stats:
    # "today" is the local calendar date; timestamps match on their date part
    today_key = today or date.today()
    total = _ZERO
    today_total = _ZERO
    count = 0
    for record in records:
        amount = to_decimal(record.get(amount_field))
        total += amount
        count += 1
        if parse_date(record.get(date_field)) == today_key:
            today_total += amount
    average = total / count if count else _ZERO
    return Stats(total=total, count=count, average=average, today_total=today_total)


def sales_stats(sales: Iterable[Mapping[str, Any]], today: Optional[date] = None) -> Stats:
    return summarize(sales, amount_field="total_sales", date_field="date", today=today)


def expense_stats(expenses: Iterable[Mapping[str, Any]], today: Optional[date] = None) -> Stats:
    return summarize(expenses, amount_field="amount", date_field="expense_date", today=today)


def filter_by_window(
    rows: Iterable[Mapping[str, Any]], days: int, today: Optional[date] = None
) -> List[Mapping[str, Any]]:
    cutoff = (today or date.today()) - timedelta(days=days)
    kept = []
    for row in rows:
        day = parse_date(row.get("day"))
        if day is not None and day >= cutoff:
            kept.append(row)
    return kept


def aggregate(rows: Sequence[Mapping[str, Any]]) -> ProfitTotals:
    revenue = sum((to_decimal(row.get("total_sales")) for row in rows), _ZERO)
    costs = sum((to_decimal(row.get("total_purchases")) for row in rows), _ZERO)
    expenses = sum((to_decimal(row.get("total_expenses")) for row in rows), _ZERO)
    net_profit = revenue - costs - expenses
    if revenue:
        margin = (net_profit / revenue * 100).quantize(_CENTS, rounding=ROUND_HALF_UP)
    else:
        margin = _ZERO
    average_daily = net_profit / len(rows) if rows else _ZERO
    return ProfitTotals(
        total_revenue=revenue,
        total_costs=costs,
        total_expenses=expenses,
        net_profit=net_profit,
        profit_margin=margin,
        average_daily_profit=average_daily,
        row_count=len(rows),
    )


def chart_series(rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Project newest-first rows onto an oldest-first time series."""
    return [
        {
            "date": short_date(row.get("day")),
            "sales": to_decimal(row.get("total_sales")),
            "costs": to_decimal(row.get("total_purchases")),
            "expenses": to_decimal(row.get("total_expenses")),
            "profit": to_decimal(row.get("net_profit")),
        }
        for row in reversed(rows)
    ]


def export_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(
            [
                iso_date(row.get("day")),
                format_number(row.get("total_sales")),
                format_number(row.get("total_purchases")),
                format_number(row.get("total_expenses")),
                format_number(row.get("net_profit")),
                format_number(row.get("profit_margin_percent")),
            ]
        )
    return output.getvalue().rstrip("\n")


def report_filename(today: Optional[date] = None) -> str:
    return f"business-report-{(today or date.today()).isoformat()}.csv"


def build_report(
    rows: Iterable[Mapping[str, Any]], days: int, today: Optional[date] = None
) -> Dict[str, Any]:
    filtered = filter_by_window(rows, days, today=today)
    return {
        "days": days,
        "rows": [dict(row) for row in filtered],
        "totals": aggregate(filtered).to_dict(),
        "chart": chart_series(filtered),
    }
