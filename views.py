from datetime import datetime
from typing import Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import DESCENDING
from pymongo.database import Database

from database import get_db, list_many, serialize
from resources import CHUIRA, DHAAN, EXPENSE, SALARY, SALES

router = APIRouter(prefix="/api", tags=["views"])


def date_strings(value) -> List[str]:
    if not isinstance(value, datetime):
        return []
    return [f"{value.month}/{value.day}/{value.year}", value.strftime("%Y-%m-%d")]


def number_string(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def dhaan_text(r: dict) -> List[str]:
    return [r.get("farmer", ""), r.get("location", ""), str(r.get("_id", ""))[-6:], *date_strings(r.get("date"))]


def chuira_text(r: dict) -> List[str]:
    return [r.get("batchId", ""), r.get("operatorName", ""), r.get("status", ""), *date_strings(r.get("date"))]


def salary_text(r: dict) -> List[str]:
    return [r.get("employeeName", ""), number_string(r.get("salaryAmount", "")), *date_strings(r.get("paidDate"))]


def expense_text(r: dict) -> List[str]:
    return [r.get("category", ""), r.get("description", ""), r.get("status", ""), *date_strings(r.get("date"))]


def sales_text(r: dict) -> List[str]:
    return [str(r.get("orderId", "")), r.get("customerName", ""), r.get("status", ""), *date_strings(r.get("date"))]


def filter_records(records: List[dict], term: Optional[str], text: Callable[[dict], List[str]]) -> List[dict]:
    """Case-insensitive substring match over each record's searchable text."""
    if not term or not term.strip():
        return records
    needle = term.strip().lower()
    return [r for r in records if any(needle in (s or "").lower() for s in text(r))]


def _total(records: List[dict], name: str) -> float:
    return sum(r.get(name) or 0 for r in records)


def _count(records: List[dict], status: str) -> int:
    return sum(1 for r in records if r.get("status") == status)


def dhaan_summary(records: List[dict]) -> dict:
    return {
        "totalQuantity": _total(records, "quantity"),
        "totalRecords": len(records),
        "uniqueFarmers": len({r.get("farmer") for r in records}),
        "uniqueLocations": len({r.get("location") for r in records}),
    }


def chuira_summary(records: List[dict]) -> dict:
    return {
        "totalProduced": _total(records, "produced"),
        "totalBhuss": _total(records, "bhuss"),
        "totalBatches": len(records),
        "completedBatches": _count(records, "Completed"),
    }


def salary_summary(records: List[dict]) -> dict:
    total = _total(records, "salaryAmount")
    return {
        "totalSalary": total,
        "totalEmployees": len(records),
        "avgSalary": total / len(records) if records else 0,
    }


def expense_summary(records: List[dict]) -> dict:
    return {
        "totalAmount": _total(records, "amount"),
        "totalExpenses": len(records),
        "pendingExpenses": _count(records, "Pending"),
        "approvedExpenses": _count(records, "Approved"),
    }


def sales_summary(records: List[dict]) -> dict:
    return {
        "totalSales": len(records),
        "totalRevenue": _total(records, "totalPrice"),
        "totalQuantity": _total(records, "quantity"),
        "completedSales": _count(records, "Completed"),
    }


# page slug -> (resource, searchable text, summary)
PAGES: Dict[str, tuple] = {
    "dhaan-record": (DHAAN, dhaan_text, dhaan_summary),
    "chuira-record": (CHUIRA, chuira_text, chuira_summary),
    "employee-salary": (SALARY, salary_text, salary_summary),
    "extra-expenses": (EXPENSE, expense_text, expense_summary),
    "sales": (SALES, sales_text, sales_summary),
}


def next_order_id(db: Database) -> int:
    latest = db[SALES.collection].find_one({}, sort=[("orderId", DESCENDING)])
    if not latest or latest.get("orderId") is None:
        return 1
    return int(latest["orderId"]) + 1


@router.get("/sales/next-order-id")
def get_next_order_id(db: Database = Depends(get_db)):
    with SALES.failures("Failed to generate order ID"):
        order_id = next_order_id(db)
    return {"orderId": order_id}


@router.get("/views/{page}")
def page_view(page: str, search: Optional[str] = Query(None), db: Database = Depends(get_db)):
    if page not in PAGES:
        raise HTTPException(status_code=404, detail="Page not found")
    resource, text, summary = PAGES[page]
    with resource.failures("Failed to fetch records"):
        records = list_many(db, resource.collection)
    filtered = filter_records(records, search, text)
    return {
        "records": [serialize(r) for r in filtered],
        "summary": summary(records),
    }
