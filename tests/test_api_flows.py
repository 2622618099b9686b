"""Mini-README: End-to-end API tests over an in-memory database.

Requests authenticate with bearer tokens (CSRF-exempt) unless a test is about
the cookie session itself. Covers auth, role gating, project roster rules,
attendance upserts, ledger recomputation, analytics and insights.
"""

from datetime import date

from sideledger.llm import FALLBACK_INSIGHTS
from sideledger.models import Role

from conftest import TEST_PASSWORD


def _project_payload(**overrides) -> dict:
    payload = {
        "name": "Tower A",
        "client": "Acme Infra",
        "location": "Pune",
        "budget": 2_500_000,
        "start_date": "2024-01-15",
    }
    payload.update(overrides)
    return payload


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_login_returns_token_and_sets_session_cookie(client, make_user) -> None:
    make_user("Amit Kumar")

    response = client.post("/api/auth/login", json={"email": "  Amit.Kumar@example.com ", "password": TEST_PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["role"] == "worker"
    assert client.cookies.get("session_token") == body["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.json()["email"] == "amit.kumar@example.com"


def test_login_rejects_wrong_password(client, make_user) -> None:
    make_user("Amit Kumar")

    response = client.post("/api/auth/login", json={"email": "amit.kumar@example.com", "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid credentials"}


def test_requests_without_identity_are_unauthorized(client) -> None:
    assert client.get("/api/projects").status_code == 401
    assert client.get("/api/projects", headers={"Authorization": "Bearer forged"}).status_code == 401


def test_worker_registration_and_duplicate_email(client) -> None:
    payload = {
        "name": "Rohan Gupta",
        "email": "rohan@example.com",
        "password": "Formwork-2024",
        "phone": "9000000001",
        "worker_role": "Carpenter",
        "specialty": "Formwork",
        "daily_rate": 850,
    }

    created = client.post("/api/worker-auth/register", json=payload)
    assert created.status_code == 201
    assert created.json()["user"]["role"] == "worker"

    client.cookies.clear()
    duplicate = client.post("/api/worker-auth/register", json={**payload, "email": "ROHAN@example.com"})
    assert duplicate.status_code == 409


def test_workers_cannot_use_admin_routes(client, make_user, auth_headers) -> None:
    worker = make_user("Amit Kumar")

    response = client.post("/api/projects", json=_project_payload(), headers=auth_headers(worker))

    assert response.status_code == 403
    assert client.get("/api/expenses", headers=auth_headers(worker)).status_code == 403


def test_role_is_reverified_from_the_database(client, db, make_user, auth_headers) -> None:
    """A token minted while the user was admin stops granting admin access after demotion."""
    user = make_user("Former Admin", role=Role.ADMIN)
    headers = auth_headers(user)
    user.role = Role.WORKER
    user.daily_rate = 400
    db.commit()

    assert client.get("/api/invoices", headers=headers).status_code == 403


def test_project_roster_accepts_only_workers(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    worker = make_user("Amit Kumar")
    headers = auth_headers(admin)

    with_admin = client.post("/api/projects", json=_project_payload(worker_ids=[worker.id, admin.id]), headers=headers)
    unknown = client.post("/api/projects", json=_project_payload(worker_ids=[9999]), headers=headers)
    created = client.post("/api/projects", json=_project_payload(worker_ids=[worker.id, worker.id]), headers=headers)

    assert with_admin.status_code == 400
    assert unknown.status_code == 404
    assert created.status_code == 201
    assert [member["id"] for member in created.json()["workers"]] == [worker.id]


def test_project_dates_are_validated(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    headers = auth_headers(admin)

    bad = client.post("/api/projects", json=_project_payload(end_date="2024-01-01"), headers=headers)
    project_id = client.post("/api/projects", json=_project_payload(), headers=headers).json()["id"]
    bad_update = client.put(f"/api/projects/{project_id}", json={"end_date": "2023-12-31"}, headers=headers)

    assert bad.status_code == 422
    assert bad_update.status_code == 400


def test_worker_sees_only_assigned_projects(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    amit = make_user("Amit Kumar")
    rahul = make_user("Rahul Sharma")
    mine = client.post("/api/projects", json=_project_payload(worker_ids=[amit.id]), headers=auth_headers(admin)).json()
    theirs = client.post("/api/projects", json=_project_payload(name="Villa", worker_ids=[rahul.id]), headers=auth_headers(admin)).json()

    listed = client.get("/api/projects", headers=auth_headers(amit)).json()

    assert [project["id"] for project in listed] == [mine["id"]]
    assert client.get(f"/api/projects/{theirs['id']}", headers=auth_headers(amit)).status_code == 404
    assert client.get(f"/api/projects/{mine['id']}", headers=auth_headers(amit)).status_code == 200


def test_attendance_upsert_over_http(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    worker = make_user("Amit Kumar")

    first = client.post("/api/attendance", json={"date": "2024-03-05T09:00:00", "status": "present"}, headers=auth_headers(worker))
    again = client.post("/api/attendance", json={"date": "2024-03-05T14:00:00", "notes": "Shuttering"}, headers=auth_headers(worker))
    verified = client.post(
        "/api/attendance",
        json={"worker_id": worker.id, "date": "2024-03-05", "status": "present"},
        headers=auth_headers(admin),
    )

    assert first.status_code == 201
    assert first.json()["status"] == "pending"
    assert again.status_code == 200
    assert again.json()["id"] == first.json()["id"]
    assert verified.status_code == 200
    assert verified.json()["status"] == "present"
    assert verified.json()["worker"]["name"] == "Amit Kumar"

    listed = client.get("/api/attendance", params={"date": "2024-03-05"}, headers=auth_headers(admin)).json()
    assert len(listed) == 1


def test_attendance_rejects_unknown_worker_and_missing_date(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)

    unknown = client.post("/api/attendance", json={"worker_id": 9999, "date": "2024-03-05"}, headers=auth_headers(admin))
    missing_date = client.post("/api/attendance", json={"worker_id": 1}, headers=auth_headers(admin))

    assert unknown.status_code == 400
    assert missing_date.status_code == 422


def test_expense_totals_are_recomputed_and_filterable(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    headers = auth_headers(admin)
    payload = {
        "vendor": "BuildMart",
        "category": "materials",
        "invoice_date": "2024-03-05",
        "total_amount": 1,
        "items": [
            {"name": "Cement", "quantity": 10, "price": 350, "gst_rate": 18, "amount": 1},
            {"name": "Sand", "quantity": 2, "unit_price": 1200},
        ],
    }

    created = client.post("/api/expenses", json=payload, headers=headers)
    client.post(
        "/api/expenses",
        json={"vendor": "Crew", "category": "labor", "invoice_date": "2024-02-01", "items": [{"name": "Day crew", "price": 4000}]},
        headers=headers,
    )

    assert created.status_code == 201
    body = created.json()
    assert body["total_amount"] == 5900
    assert body["total_gst"] == 630
    assert [item["amount"] for item in body["items"]] == [3500, 2400]

    labor = client.get("/api/expenses", params={"category": "labor"}, headers=headers).json()
    march = client.get("/api/expenses", params={"start": "2024-03-01"}, headers=headers).json()
    assert [expense["vendor"] for expense in labor] == ["Crew"]
    assert [expense["vendor"] for expense in march] == ["BuildMart"]

    updated = client.put(f"/api/expenses/{body['id']}", json={"items": [{"name": "Cement", "quantity": 1, "price": 350}]}, headers=headers)
    assert updated.json()["total_amount"] == 350
    assert updated.json()["total_gst"] == 0


def test_expense_requires_items_and_known_project(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    headers = auth_headers(admin)

    no_items = client.post("/api/expenses", json={"vendor": "X", "category": "materials", "items": []}, headers=headers)
    bad_project = client.post(
        "/api/expenses",
        json={"vendor": "X", "category": "materials", "project_id": 77, "items": [{"name": "Nails", "price": 10}]},
        headers=headers,
    )

    assert no_items.status_code == 422
    assert bad_project.status_code == 404


def test_invoice_crud_and_dashboard(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    make_user("Amit Kumar")
    headers = auth_headers(admin)
    project = client.post("/api/projects", json=_project_payload(), headers=headers).json()
    today = date.today().isoformat()

    invoice = client.post(
        "/api/invoices",
        json={
            "invoice_number": "INV-2024-001",
            "date": today,
            "company_name": "SideLedger Builders",
            "client_name": "Acme Infra",
            "status": "sent",
            "project_id": project["id"],
            "items": [{"description": "Foundation", "quantity": 1, "rate": 10000}],
        },
        headers=headers,
    )
    client.post(
        "/api/expenses",
        json={"vendor": "BuildMart", "category": "materials", "invoice_date": today, "project_id": project["id"], "items": [{"name": "Cement", "price": 4000}]},
        headers=headers,
    )

    assert invoice.status_code == 201
    assert invoice.json()["total_amount"] == 10000

    stats = client.get("/api/analytics/stats", headers=headers).json()
    assert stats["total_projects"] == 1
    assert stats["active_workers"] == 1
    assert stats["monthly_expenses"] == 4000
    assert stats["recent_projects"][0]["id"] == project["id"]

    costs = client.get("/api/analytics/costs", headers=headers).json()
    assert costs == [{"category": "materials", "total": 4000}]

    deleted = client.delete(f"/api/invoices/{invoice.json()['id']}", headers=headers)
    assert deleted.status_code == 200
    assert client.get(f"/api/invoices/{invoice.json()['id']}", headers=headers).status_code == 404


def test_admin_insights_bundle_is_tagged(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    worker = make_user("Amit Kumar")
    headers = auth_headers(admin)
    client.post("/api/projects", json=_project_payload(worker_ids=[worker.id]), headers=headers)
    client.post("/api/attendance", json={"worker_id": worker.id, "date": "2024-03-05", "status": "absent"}, headers=headers)

    response = client.get("/api/ai/insights", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["insights"] == FALLBACK_INSIGHTS
    assert body["data"]["role"] == "admin"
    assert body["data"]["total_projects"] == 1
    assert body["data"]["global_leaves"][0] == {"worker_id": worker.id, "name": "Amit Kumar", "leaves": 1}
    assert body["data"]["project_stats"][0]["worker_leaves"][0]["leaves"] == 1


def test_worker_insights_and_summary(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    worker = make_user("Amit Kumar", daily_rate=500)
    for day, status in [("2024-03-04", "present"), ("2024-03-05", "present"), ("2024-03-06", "absent"), ("2024-03-07", "present")]:
        client.post("/api/attendance", json={"worker_id": worker.id, "date": day, "status": status}, headers=auth_headers(admin))

    summary = client.get("/api/analytics/my-summary", headers=auth_headers(worker)).json()
    insights = client.get("/api/ai/insights", headers=auth_headers(worker)).json()

    assert summary["estimated_wages"] == 1500
    assert summary["days_present"] == 3
    assert insights["data"]["role"] == "worker"
    assert insights["data"]["days_absent"] == 1
    assert client.get("/api/analytics/my-summary", headers=auth_headers(admin)).status_code == 403


def test_worker_delete_is_a_soft_delete(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    worker = make_user("Amit Kumar")
    worker_headers = auth_headers(worker)

    response = client.delete(f"/api/users/workers/{worker.id}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert client.get("/api/users/workers", headers=auth_headers(admin)).json() == []
    assert client.get(f"/api/users/workers/{worker.id}", headers=auth_headers(admin)).json()["status"] == "inactive"
    assert client.get("/api/auth/me", headers=worker_headers).status_code == 401


def test_admin_creates_and_updates_workers(client, make_user, auth_headers) -> None:
    admin = make_user("Site Admin", role=Role.ADMIN)
    headers = auth_headers(admin)

    missing_rate = client.post(
        "/api/users",
        json={"name": "Vikram Singh", "email": "vikram@example.com", "password": "Wiring-2024"},
        headers=headers,
    )
    created = client.post(
        "/api/users",
        json={"name": "Vikram Singh", "email": "vikram@example.com", "password": "Wiring-2024", "daily_rate": 900},
        headers=headers,
    )
    duplicate = client.post(
        "/api/users",
        json={"name": "Vikram S", "email": "vikram@example.com", "password": "Wiring-2024", "daily_rate": 900},
        headers=headers,
    )
    updated = client.put(f"/api/users/workers/{created.json()['id']}", json={"daily_rate": 950}, headers=headers)

    assert missing_rate.status_code == 422
    assert created.status_code == 201
    assert duplicate.status_code == 409
    assert updated.json()["daily_rate"] == 950
    assert client.get(f"/api/users/workers/{admin.id}", headers=headers).status_code == 404


def test_scan_returns_mock_without_credentials(client, make_user, auth_headers, monkeypatch) -> None:
    from sideledger.config import settings

    monkeypatch.setattr(settings, "ocr_api_key", None)
    admin = make_user("Site Admin", role=Role.ADMIN)

    response = client.post("/api/expenses/scan", json={"image_url": "https://files.example/bill.png"}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["vendor"] == "Demo Vendor"


def test_deleting_a_project_untags_its_ledger(client, make_user, auth_headers) -> None:
    """A project created after a delete must not inherit the old project's costs or revenue."""
    admin = make_user("Site Admin", role=Role.ADMIN)
    headers = auth_headers(admin)
    old = client.post("/api/projects", json=_project_payload(), headers=headers).json()
    expense = client.post(
        "/api/expenses",
        json={"vendor": "BuildMart", "category": "materials", "project_id": old["id"], "items": [{"name": "Cement", "price": 4000}]},
        headers=headers,
    ).json()
    invoice = client.post(
        "/api/invoices",
        json={
            "invoice_number": "INV-9",
            "date": "2024-03-05",
            "company_name": "SideLedger Builders",
            "client_name": "Acme Infra",
            "project_id": old["id"],
            "items": [{"description": "Piling", "rate": 9000}],
        },
        headers=headers,
    ).json()

    assert client.delete(f"/api/projects/{old['id']}", headers=headers).status_code == 200
    fresh = client.post("/api/projects", json=_project_payload(name="Fresh"), headers=headers).json()

    assert client.get(f"/api/expenses/{expense['id']}", headers=headers).json()["project_id"] is None
    assert client.get(f"/api/invoices/{invoice['id']}", headers=headers).json()["project_id"] is None
    [stats] = client.get("/api/ai/insights", headers=headers).json()["data"]["project_stats"]
    assert stats["project_id"] == fresh["id"]
    assert (stats["revenue"], stats["expense"]) == (0, 0)
