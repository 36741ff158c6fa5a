"""
Dashboard aggregation: KPI totals, month-over-month trends and the
recent-activity feed, recomputed from the five collections on every request.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import get_db, list_many, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

RECENT_LIMIT = 10
ACTIVITY_LIMIT = 5

# collection -> (amount field, date field used for monthly trends)
METRICS = {
    "dhaanrecords": ("quantity", "date"),
    "chuirarecords": ("produced", "date"),
    "salaryrecords": ("salaryAmount", "paidDate"),
    "expenserecords": ("amount", "date"),
    "salesrecords": ("totalPrice", "date"),
}


def sum_field(records: Iterable[dict], name: str) -> float:
    return sum(r.get(name) or 0 for r in records)


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def month_total(records: Iterable[dict], name: str, date_field: str, year: int, month: int) -> float:
    total = 0
    for r in records:
        when = r.get(date_field)
        if isinstance(when, datetime) and when.year == year and when.month == month:
            total += r.get(name) or 0
    return total


def calculate_trend(current: float, previous: float) -> int:
    """Percentage change, rounded half up; 100 or 0 when there is no baseline."""
    if previous == 0:
        return 100 if current > 0 else 0
    return math.floor((current - previous) / previous * 100 + 0.5)


def trend_entry(trend: int, lower_is_better: bool = False) -> dict:
    return {"value": abs(trend), "isPositive": trend <= 0 if lower_is_better else trend >= 0}


def time_ago(then: datetime, now: datetime) -> str:
    seconds = math.floor((now - then).total_seconds())
    if seconds < 60:
        return f"{seconds} seconds ago"
    if seconds < 3600:
        return f"{seconds // 60} minutes ago"
    if seconds < 86400:
        return f"{seconds // 3600} hours ago"
    if seconds < 2592000:
        return f"{seconds // 86400} days ago"
    if seconds < 31536000:
        return f"{seconds // 2592000} months ago"
    return f"{seconds // 31536000} years ago"


def format_number(value) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def format_amount(value) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def describe(collection: str, record: dict) -> Tuple[str, str]:
    if collection == "dhaanrecords":
        return f"Dhaan collection from {record.get('farmer')} ({format_number(record.get('quantity'))} kg)", "success"
    if collection == "chuirarecords":
        return f"Chuira production batch {record.get('batchId')} ({format_number(record.get('produced'))} kg)", "warning"
    if collection == "salaryrecords":
        return f"Salary paid to {record.get('employeeName')} (NPR {format_amount(record.get('salaryAmount'))})", "info"
    if collection == "expenserecords":
        return f"Expense added: {record.get('category')} (NPR {format_amount(record.get('amount'))})", "info"
    return f"Sale to {record.get('customerName')} (NPR {format_amount(record.get('totalPrice'))})", "success"


def epoch_ms(when: datetime) -> int:
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return int(when.timestamp() * 1000)


def recent_activities(recent: dict, now: datetime, limit: int = ACTIVITY_LIMIT) -> List[dict]:
    activities = []
    for collection, records in recent.items():
        for record in records:
            created = record.get("createdAt")
            if not isinstance(created, datetime):
                continue
            action, kind = describe(collection, record)
            activities.append({
                "action": action,
                "time": time_ago(created, now),
                "type": kind,
                "timestamp": epoch_ms(created),
            })
    activities.sort(key=lambda a: a["timestamp"], reverse=True)
    return activities[:limit]


def summarize(all_records: dict, recent: dict, now: datetime) -> dict:
    """Reduce already-fetched records (keyed by collection) into the dashboard payload."""
    totals = {c: sum_field(all_records.get(c, []), field) for c, (field, _) in METRICS.items()}
    total_salary = totals["salaryrecords"]
    total_extra = totals["expenserecords"]
    total_expenses = total_salary + total_extra
    total_sales = totals["salesrecords"]

    prev_year, prev_month = previous_month(now.year, now.month)

    def monthly(collection: str, year: int, month: int) -> float:
        field, date_field = METRICS[collection]
        return month_total(all_records.get(collection, []), field, date_field, year, month)

    current = {c: monthly(c, now.year, now.month) for c in METRICS}
    previous = {c: monthly(c, prev_year, prev_month) for c in METRICS}
    cur_expenses = current["salaryrecords"] + current["expenserecords"]
    prev_expenses = previous["salaryrecords"] + previous["expenserecords"]
    cur_profit = current["salesrecords"] - cur_expenses
    prev_profit = previous["salesrecords"] - prev_expenses

    return {
        "totalDhaanCollected": totals["dhaanrecords"],
        "totalChuiraProduced": totals["chuirarecords"],
        "totalExpenses": total_expenses,
        "totalSales": total_sales,
        "actualProfit": total_sales - total_expenses,
        "totalSalaryExpenses": total_salary,
        "totalExtraExpenses": total_extra,
        "recentActivities": recent_activities(recent, now),
        "trends": {
            "dhaan": trend_entry(calculate_trend(current["dhaanrecords"], previous["dhaanrecords"])),
            "chuira": trend_entry(calculate_trend(current["chuirarecords"], previous["chuirarecords"])),
            "expenses": trend_entry(calculate_trend(cur_expenses, prev_expenses), lower_is_better=True),
            "sales": trend_entry(calculate_trend(current["salesrecords"], previous["salesrecords"])),
            "profit": trend_entry(calculate_trend(cur_profit, prev_profit)),
        },
    }


def fetch_collections(db: Database, limit: Optional[int] = None) -> dict:
    with ThreadPoolExecutor(max_workers=len(METRICS)) as pool:
        futures = {c: pool.submit(list_many, db, c, None, limit) for c in METRICS}
        return {c: future.result() for c, future in futures.items()}


@router.get("")
def get_dashboard(db: Database = Depends(get_db)):
    try:
        all_records = fetch_collections(db)
        recent = fetch_collections(db, RECENT_LIMIT)
        return summarize(all_records, recent, utcnow())
    except Exception as exc:
        logger.exception("Error fetching dashboard data")
        raise HTTPException(status_code=500, detail="Failed to fetch dashboard data") from exc
