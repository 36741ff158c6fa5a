import copy

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app

PAYLOADS = {
    "dhaan-records": {"quantity": "120.5", "farmer": "Ram Bahadur", "location": "Chitwan", "date": "2024-05-01"},
    "chuira-records": {
        "batchId": "B-001",
        "produced": "80",
        "bhuss": "12",
        "operatorName": "Sita",
        "status": "In Progress",
        "date": "2024-05-02",
    },
    "employee-salary": {"employeeName": "Hari", "salaryAmount": "15000", "paidDate": "2024-05-03"},
    "extra-expenses": {"date": "2024-05-04", "category": "Fuel", "amount": "2500"},
    "sales": {
        "orderId": "1",
        "date": "2024-05-05",
        "quantity": "10",
        "pricePerKg": "50",
        "totalPrice": "500",
        "customerName": "Gita Traders",
        "status": "Completed",
    },
}


def _make_client(db) -> TestClient:
    ensure_indexes(db)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app)


@pytest.fixture
def db():
    return mongomock.MongoClient()["chuira_dashboard_test"]


@pytest.fixture
def client(db):
    with _make_client(db) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def payloads():
    return copy.deepcopy(PAYLOADS)
