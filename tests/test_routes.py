import asyncio
from datetime import date, timedelta

from app import routes_sms

STARBUCKS = "Rs 500.00 debited from A/c XX1234 at STARBUCKS COFFEE on 05-01-24"
UPI_HANDLE = "Rs 250.00 sent to 8007320919@ybl from A/c XX1234 on 06-01-24"


def _manual(client, headers, **fields):
    body = {"amount": 100, "merchant": "Shop", "date": date.today().isoformat()}
    body.update(fields)
    r = client.post("/transactions", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def _category_id(client, headers, name):
    return next(c["id"] for c in client.get("/categories", headers=headers).json() if c["name"] == name)


# ---- root ----

def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["rules_version"]


def test_root_redirects_to_dashboard(client):
    r = client.get("/", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/dashboard"


def test_owner_required(client):
    assert client.get("/transactions").status_code == 401
    assert client.get("/transactions", headers={"X-User-Id": "abc"}).status_code == 401


# ---- sms ----

def test_ingest_without_owner_is_a_pipeline_result(client):
    r = client.post("/sms/ingest", json={"body": STARBUCKS, "sender": "AD-HDFCBK"})
    assert r.status_code == 200
    assert r.json()["success"] is False
    assert r.json()["error"] == "User not logged in"


def test_ingest_and_list(client, headers):
    r = client.post("/sms/ingest", json={"body": STARBUCKS, "sender": "AD-HDFCBK"}, headers=headers)
    assert r.status_code == 200
    result = r.json()
    assert result["success"] is True
    assert result["needs_naming"] is False

    txs = client.get("/transactions", params={"month": "2024-01"}, headers=headers).json()
    assert [(t["merchant"], t["amount"], t["date"]) for t in txs] == [("Starbucks", 500.0, "2024-01-05")]

    events = client.get("/sms/events", headers=headers).json()
    assert [e["kind"] for e in events] == ["data_changed"]


def test_name_unknown_merchant_flow(client, headers):
    r = client.post("/sms/ingest", json={"body": UPI_HANDLE, "sender": "JD-SBIUPI"}, headers=headers)
    result = r.json()
    assert result["needs_naming"] is True
    assert result["new_merchant"]["raw_name"] == "8007320919@ybl"

    unnamed = client.get("/merchants/unnamed", headers=headers).json()
    assert unnamed == [{"raw_name": "8007320919@ybl", "count": 1, "last_amount": 250.0}]

    other = _category_id(client, headers, "Other")
    r = client.post(
        "/merchants",
        json={"raw_name": "8007320919@ybl", "display_name": "Ravi", "category_id": other},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["updated_transactions"] == 1
    assert r.json()["mapping"]["display_name"] == "Ravi"

    tx = client.get(f"/transactions/{result['transaction_id']}", headers=headers).json()
    assert tx["merchant"] == "Ravi"
    assert tx["original_merchant"] == "8007320919@ybl"
    assert client.get("/merchants/unnamed", headers=headers).json() == []

    mapping_id = r.json()["mapping"]["id"]
    assert client.delete(f"/merchants/{mapping_id}", headers=headers).status_code == 204
    assert client.delete(f"/merchants/{mapping_id}", headers=headers).status_code == 404


def test_save_merchant_with_foreign_category(client, headers):
    foreign = _category_id(client, {"X-User-Id": "2"}, "Other")
    r = client.post(
        "/merchants",
        json={"raw_name": "CHAI POINT", "display_name": "Chai Point", "category_id": foreign},
        headers=headers,
    )
    assert r.status_code == 404


def test_scan_upload(client, headers):
    content = (
        "address,body,date\n"
        f'AD-HDFCBK,"{STARBUCKS}",\n'
        'AD-HDFCBK,"Rs 500 debited from A/c XX1234. Click here to claim your prize",\n'
        f"JD-SBIUPI,{UPI_HANDLE},\n"
    )
    r = client.post("/sms/scan", files={"file": ("inbox.csv", content, "text/csv")}, headers=headers)

    assert r.status_code == 200
    assert r.json() == {"total": 3, "imported": 2, "rejected": 1, "failed": 0, "needs_naming": 1}


def test_scan_upload_bad_file(client, headers):
    r = client.post("/sms/scan", files={"file": ("inbox.xml", "<sms/>", "text/xml")}, headers=headers)
    assert r.status_code == 400


# ---- transactions ----

def test_manual_entry_allows_duplicates(client, headers):
    first = _manual(client, headers)
    second = _manual(client, headers)
    assert first["id"] != second["id"]
    assert len(client.get("/transactions", headers=headers).json()) == 2


def test_manual_entry_validation(client, headers):
    r = client.post("/transactions", json={"amount": -5, "merchant": "Shop"}, headers=headers)
    assert r.status_code == 422
    r = client.post("/transactions", json={"amount": 5, "merchant": "Shop", "direction": "up"}, headers=headers)
    assert r.status_code == 422


def test_update_relabel_delete(client, headers):
    tx = _manual(client, headers, merchant="CHAI POINT")

    r = client.patch(f"/transactions/{tx['id']}", json={"notes": "team", "amount": 120}, headers=headers)
    assert r.status_code == 200
    assert r.json()["notes"] == "team"
    assert r.json()["amount"] == 120.0
    assert r.json()["original_merchant"] == "CHAI POINT"

    r = client.post(f"/transactions/{tx['id']}/relabel", json={"display_name": "Office Chai"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["merchant"] == "Office Chai"
    assert r.json()["original_merchant"] == "CHAI POINT"

    assert client.get(f"/transactions/{tx['id']}", headers={"X-User-Id": "2"}).status_code == 404
    assert client.delete(f"/transactions/{tx['id']}", headers=headers).status_code == 204
    assert client.get(f"/transactions/{tx['id']}", headers=headers).status_code == 404


# ---- categories ----

def test_category_crud(client, headers):
    r = client.post("/categories", json={"name": "Pets"}, headers=headers)
    assert r.status_code == 201
    pets = r.json()

    assert client.post("/categories", json={"name": "Pets"}, headers=headers).status_code == 409

    r = client.patch(f"/categories/{pets['id']}/budget", json={"budget_limit": 2000}, headers=headers)
    assert r.json()["budget_limit"] == 2000

    tx = _manual(client, headers, category_id=pets["id"])
    assert client.delete(f"/categories/{pets['id']}", headers=headers).status_code == 204
    assert client.get(f"/transactions/{tx['id']}", headers=headers).json()["category_id"] is None
    assert client.delete(f"/categories/{pets['id']}", headers=headers).status_code == 404


# ---- subscriptions / dashboard ----

def test_subscription_detection(client, headers):
    today = date.today()
    for days_ago in (60, 30, 0):
        _manual(client, headers, merchant="Netflix", amount=199, date=(today - timedelta(days=days_ago)).isoformat())

    r = client.post("/subscriptions/detect", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["detected"] == 1
    assert body["subscriptions"][0]["merchant"] == "Netflix"
    assert body["subscriptions"][0]["frequency"] == "monthly"
    assert body["subscriptions"][0]["next_date"] == (today + timedelta(days=30)).isoformat()
    assert body["monthly_cost"] == 199.0

    assert len(client.get("/subscriptions", headers=headers).json()) == 1


def test_dashboard(client, headers):
    _manual(client, headers, amount=300)
    _manual(client, headers, amount=1000, direction="credit", merchant="Salary")

    r = client.get("/dashboard", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["month"] == date.today().strftime("%Y-%m")
    assert body["income"] == 1000.0
    assert body["expenses"] == 300.0
    assert body["net"] == 700.0
    assert body["tx_count_month"] == 2
    assert body["spending_by_category"][0]["label"] == "Uncategorized"
    assert [t["amount"] for t in body["top_transactions"]] == [1000.0, 300.0]
    assert body["chart"][-1]["amount"] == 300.0
    assert "trend" in body["burn_rate"]


def test_scan_runs_off_the_event_loop(client, headers, monkeypatch):
    real_scan = routes_sms.scan_history
    loops = []

    def recording_scan(*args, **kwargs):
        try:
            asyncio.get_running_loop()
            loops.append("event loop")
        except RuntimeError:
            loops.append("worker thread")
        return real_scan(*args, **kwargs)

    monkeypatch.setattr(routes_sms, "scan_history", recording_scan)

    content = f'address,body\nAD-HDFCBK,"{STARBUCKS}"\n'
    r = client.post("/sms/scan", files={"file": ("inbox.csv", content, "text/csv")}, headers=headers)

    assert r.status_code == 200
    assert r.json()["imported"] == 1
    assert loops == ["worker thread"]
