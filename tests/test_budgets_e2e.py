def test_budget_crud_with_spent(app_client, auth_headers):
    for amount, day in ((120.0, "2025-04-03"), (30.0, "2025-04-28")):
        app_client.post(
            "/api/transactions",
            json={"amount": amount, "type": "expense", "category": "Food", "date": day},
            headers=auth_headers,
        )
    # Different month and an income in the same category do not count
    app_client.post("/api/transactions", json={"amount": 999, "type": "expense", "category": "Food", "date": "2025-05-01"}, headers=auth_headers)
    app_client.post("/api/transactions", json={"amount": 50, "type": "income", "category": "Food", "date": "2025-04-10"}, headers=auth_headers)

    r = app_client.post("/api/budgets", json={"category": "Food", "limit": 300, "month": "2025-04"}, headers=auth_headers)
    assert r.status_code == 201, r.text
    budget = r.json()
    assert budget["spent"] == 150.0
    assert budget["remaining"] == 150.0
    assert budget["percentage"] == 50.0

    dup = app_client.post("/api/budgets", json={"category": "Food", "limit": 10, "month": "2025-04"}, headers=auth_headers)
    assert dup.status_code == 400

    app_client.post("/api/budgets", json={"category": "Fun", "limit": 50, "month": "2025-05"}, headers=auth_headers)
    april = app_client.get("/api/budgets", params={"month": "2025-04"}, headers=auth_headers).json()
    assert [b["category"] for b in april] == ["Food"]
    assert len(app_client.get("/api/budgets", headers=auth_headers).json()) == 2

    upd = app_client.put(f"/api/budgets/{budget['id']}", json={"limit": 150}, headers=auth_headers)
    assert upd.status_code == 200
    assert upd.json()["remaining"] == 0.0
    assert upd.json()["percentage"] == 100.0

    assert app_client.delete(f"/api/budgets/{budget['id']}", headers=auth_headers).status_code == 200
    assert app_client.delete(f"/api/budgets/{budget['id']}", headers=auth_headers).status_code == 404


def test_budget_validation_and_ownership(app_client, auth_headers, new_user):
    assert app_client.post("/api/budgets", json={"category": "Food", "limit": 10, "month": "2025-13"}, headers=auth_headers).status_code == 422
    assert app_client.post("/api/budgets", json={"category": "Food", "limit": 0, "month": "2025-01"}, headers=auth_headers).status_code == 422
    assert app_client.get("/api/budgets", params={"month": "April"}, headers=auth_headers).status_code == 422

    budget = app_client.post("/api/budgets", json={"category": "Car", "limit": 10, "month": "2025-01"}, headers=auth_headers).json()
    _, other = new_user("other-budget")
    assert app_client.put(f"/api/budgets/{budget['id']}", json={"limit": 5}, headers=other).status_code == 403
    assert app_client.delete(f"/api/budgets/{budget['id']}", headers=other).status_code == 403
