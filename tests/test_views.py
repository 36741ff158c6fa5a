from pymongo.errors import ServerSelectionTimeoutError

import main


def test_search_and_summary(client, payloads) -> None:
    client.post("/api/dhaan-records", json=payloads["dhaan-records"])
    client.post("/api/dhaan-records", json={"quantity": 30, "farmer": "Krishna", "location": "Dang", "date": "2024-06-10"})
    client.post("/api/dhaan-records", json={"quantity": 20, "farmer": "Ram Bahadur", "location": "Dang", "date": "2024-06-11"})

    resp = client.get("/api/views/dhaan-record", params={"search": "ram"})
    assert resp.status_code == 200
    data = resp.json()
    assert {r["farmer"] for r in data["records"]} == {"Ram Bahadur"}
    assert len(data["records"]) == 2
    assert data["summary"] == {
        "totalQuantity": 170.5,
        "totalRecords": 3,
        "uniqueFarmers": 2,
        "uniqueLocations": 2,
    }


def test_search_matches_dates(client, payloads) -> None:
    client.post("/api/chuira-records", json=payloads["chuira-records"])
    assert len(client.get("/api/views/chuira-record", params={"search": "5/2/2024"}).json()["records"]) == 1
    assert len(client.get("/api/views/chuira-record", params={"search": "2024-05-02"}).json()["records"]) == 1
    assert client.get("/api/views/chuira-record", params={"search": "2023"}).json()["records"] == []


def test_blank_search_returns_everything(client, payloads) -> None:
    client.post("/api/extra-expenses", json=payloads["extra-expenses"])
    client.post("/api/extra-expenses", json=dict(payloads["extra-expenses"], status="Approved", amount=500))
    data = client.get("/api/views/extra-expenses", params={"search": "  "}).json()
    assert len(data["records"]) == 2
    assert data["summary"] == {
        "totalAmount": 3000,
        "totalExpenses": 2,
        "pendingExpenses": 1,
        "approvedExpenses": 1,
    }


def test_salary_summary_average(client, payloads) -> None:
    client.post("/api/employee-salary", json=payloads["employee-salary"])
    client.post("/api/employee-salary", json=dict(payloads["employee-salary"], employeeName="Gopal", salaryAmount=5000))
    data = client.get("/api/views/employee-salary", params={"search": "15000"}).json()
    assert [r["employeeName"] for r in data["records"]] == ["Hari"]
    assert data["summary"]["avgSalary"] == 10000


def test_sales_view(client, payloads) -> None:
    client.post("/api/sales", json=payloads["sales"])
    data = client.get("/api/views/sales").json()
    assert data["summary"] == {
        "totalSales": 1,
        "totalRevenue": 500,
        "totalQuantity": 10,
        "completedSales": 1,
    }


def test_empty_summary(client) -> None:
    data = client.get("/api/views/employee-salary").json()
    assert data == {"records": [], "summary": {"totalSalary": 0, "totalEmployees": 0, "avgSalary": 0}}


def test_unknown_page(client) -> None:
    resp = client.get("/api/views/inventory")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Page not found"}


def test_next_order_id(client, payloads) -> None:
    assert client.get("/api/sales/next-order-id").json() == {"orderId": 1}
    client.post("/api/sales", json=dict(payloads["sales"], orderId=7))
    client.post("/api/sales", json=dict(payloads["sales"], orderId=3))
    assert client.get("/api/sales/next-order-id").json() == {"orderId": 8}


def test_root(client) -> None:
    assert client.get("/").json() == {"message": "Chuira Mill Records API running"}


def test_connection_check_failure(client, monkeypatch) -> None:
    def unreachable():
        raise ServerSelectionTimeoutError("localhost:27017: connection refused")

    monkeypatch.setattr(main, "connect", unreachable)
    resp = client.get("/api/test")
    assert resp.status_code == 500
    body = resp.json()
    assert body["status"] == "error"
    assert body["message"] == "Failed to connect to MongoDB"
    assert "connection refused" in body["error"]
