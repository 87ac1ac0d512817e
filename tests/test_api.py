"""
Tests for the HTTP layer, end to end over an in-memory store.
"""

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from finnan.orchestrator import create_app_components
from finnan.services.storage import SqlAlchemyEntityStore


@pytest.fixture
def client():
    components = create_app_components(store=SqlAlchemyEntityStore("sqlite://"))
    with TestClient(create_app(components)) as client:
        yield client


def register_and_login(client: TestClient, email: str = "budi@example.com") -> dict:
    response = client.post("/api/auth/register", json={
        "email": email, "password": "rahasia123", "name": "Budi",
    })
    assert response.status_code == 201
    token = client.post("/api/auth/login", json={
        "email": email, "password": "rahasia123",
    }).json()["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers(client) -> dict:
    return register_and_login(client)


class TestAuthRoutes:
    """Tests for register, login and the bearer guard."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.text == "Finnan API is running"

    def test_register_response(self, client):
        response = client.post("/api/auth/register", json={
            "email": "sari@example.com", "password": "rahasia123", "name": "Sari",
        })
        body = response.json()
        assert body["message"] == "User created successfully"
        assert isinstance(body["userId"], int)

    def test_login_profile_is_camel_case(self, client, headers):
        response = client.post("/api/auth/login", json={
            "email": "budi@example.com", "password": "rahasia123",
        })
        user = response.json()["user"]
        assert "createdAt" in user
        assert "passwordHash" not in user

    def test_bad_login(self, client, headers):
        response = client.post("/api/auth/login", json={
            "email": "budi@example.com", "password": "nope-nope",
        })
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_missing_token(self, client):
        response = client.get("/api/accounts")
        assert response.status_code == 401
        assert response.json()["kind"] == "authentication_error"

    def test_garbage_token(self, client):
        response = client.get("/api/accounts", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 403

    def test_me(self, client, headers):
        response = client.get("/api/auth/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["email"] == "budi@example.com"


class TestLedgerRoutes:
    """Tests for transactions through HTTP."""

    def test_income_moves_wallet(self, client, headers):
        """Form-style strings are accepted and the wallet balance moves."""
        [wallet] = client.get("/api/accounts", headers=headers).json()
        salary = next(
            c for c in client.get("/api/categories", headers=headers).json()
            if c["name"] == "Salary"
        )

        response = client.post("/api/transactions", headers=headers, json={
            "amount": "250000", "date": "2025-03-01T08:00:00Z", "type": "INCOME",
            "categoryId": str(salary["id"]), "accountId": wallet["id"],
        })
        assert response.status_code == 201
        created = response.json()
        assert created["amount"] == 250000
        assert created["categoryId"] == salary["id"]

        [wallet] = client.get("/api/accounts", headers=headers).json()
        assert wallet["balance"] == 250000

        listed = client.get("/api/transactions", headers=headers, params={"type": "INCOME"})
        assert [t["id"] for t in listed.json()] == [created["id"]]
        [row] = listed.json()
        assert row["category"]["name"] == "Salary"
        assert row["account"]["id"] == wallet["id"]
        assert row["targetAccount"] is None
        assert row["debt"] is None

        response = client.delete(f"/api/transactions/{created['id']}", headers=headers)
        assert response.json() == {"message": "Transaction deleted successfully"}
        [wallet] = client.get("/api/accounts", headers=headers).json()
        assert wallet["balance"] == 0

    def test_invalid_payload(self, client, headers):
        response = client.post("/api/transactions", headers=headers, json={"amount": "abc"})
        assert response.status_code == 400
        body = response.json()
        assert body["kind"] == "validation_error"
        assert body["details"]["issues"]

    def test_malformed_json(self, client, headers):
        response = client.post(
            "/api/categories",
            headers={**headers, "Content-Type": "application/json"},
            content=b"{not json",
        )
        assert response.status_code == 400

    def test_unknown_reference(self, client, headers):
        response = client.post("/api/transactions", headers=headers, json={
            "amount": 10, "date": "2025-03-01", "type": "EXPENSE", "categoryId": 9999,
        })
        assert response.status_code == 400

    def test_not_found(self, client, headers):
        response = client.delete("/api/accounts/9999", headers=headers)
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"

    def test_non_numeric_path_id(self, client, headers):
        response = client.delete("/api/accounts/abc", headers=headers)
        assert response.status_code == 400

    def test_users_are_isolated(self, client, headers):
        """Another user's account is not found."""
        [wallet] = client.get("/api/accounts", headers=headers).json()
        other = register_and_login(client, "sari@example.com")
        response = client.put(f"/api/accounts/{wallet['id']}", headers=other, json={
            "name": "Taken", "type": "CASH",
        })
        assert response.status_code == 404


class TestRecordRoutes:
    """Tests for the record routes and their response shapes."""

    def test_planned_expense_lifecycle(self, client, headers):
        food = next(
            c for c in client.get("/api/categories", headers=headers).json()
            if c["name"] == "Food"
        )
        created = client.post("/api/planned-expenses", headers=headers, json={
            "amount": 50000, "date": "2025-04-10", "categoryId": food["id"],
        }).json()
        assert created["status"] == "PLANNED"

        patched = client.put(
            f"/api/planned-expenses/{created['id']}", headers=headers,
            json={"description": "Groceries"},
        ).json()
        assert patched["description"] == "Groceries"
        assert patched["amount"] == 50000

        executed = client.post(f"/api/planned-expenses/{created['id']}/execute", headers=headers)
        assert executed.json()["status"] == "EXECUTED"

        again = client.post(f"/api/planned-expenses/{created['id']}/execute", headers=headers)
        assert again.status_code == 400

        listed = client.get(
            "/api/planned-expenses", headers=headers, params={"month": "4", "year": "2025"}
        )
        [item] = listed.json()
        assert item["category"]["name"] == "Food"
        assert item["account"] is None

    def test_budget_and_goal_shapes(self, client, headers):
        food = next(
            c for c in client.get("/api/categories", headers=headers).json()
            if c["name"] == "Food"
        )
        budget = client.post("/api/budgets", headers=headers, json={
            "amount": "1000000", "month": 3, "year": 2025, "categoryId": food["id"],
        })
        assert budget.status_code == 201

        [progress] = client.get("/api/budgets", headers=headers, params={"month": 3}).json()
        assert progress["spent"] == 0
        assert progress["remaining"] == 1000000
        assert progress["percentage"] == 0
        assert progress["category"]["name"] == "Food"

        goal = client.post("/api/goals", headers=headers, json={
            "name": "House", "targetAmount": 500000000,
        }).json()
        assert goal["linkedAccounts"] == []
        assert goal["currentAmount"] == 0

    def test_dashboard(self, client, headers):
        stats = client.get("/api/dashboard", headers=headers).json()
        assert stats["wealthLevel"] == "BERTAHAN"
        assert stats["nextLevel"] == "AMAN"
        assert "totalCashHistory" in stats
        assert "expenseChartData" in stats


class TestBackupRoutes:
    """Tests for export and restore over HTTP."""

    def test_export_then_restore(self, client, headers):
        response = client.get("/api/backup/export", headers=headers)
        assert response.status_code == 200
        assert response.headers["content-disposition"].startswith(
            "attachment; filename=finnan_backup_"
        )
        snapshot = response.json()
        assert snapshot["version"] == 1

        restored = client.post("/api/backup/restore", headers=headers, json=snapshot)
        assert restored.json() == {"message": "Data restored successfully"}

        [wallet] = client.get("/api/accounts", headers=headers).json()
        assert wallet["name"] == "Wallet"

    def test_restore_rejects_garbage(self, client, headers):
        response = client.post("/api/backup/restore", headers=headers, json={"hello": 1})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid backup format"
