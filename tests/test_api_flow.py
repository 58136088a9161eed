# tests/test_api_flow.py
from datetime import datetime, timedelta, timezone

import pytest

PASSWORD = "pass1234"


def _charge(client, headers, admin, user, amount, role="seller"):
    r = client.post(
        "/points/admin/charge",
        json={"user_id": user.id, "role": role, "amount": amount},
        headers=headers(admin),
    )
    assert r.status_code == 201, r.text
    return r.json()


def _create_job(client, headers, seller, amount=100000, **extra):
    body = {"title": "블라인드 3창 설치", "address": "서울시 마포구", "budget_amount": amount}
    body.update(extra)
    r = client.post("/jobs", json=body, headers=headers(seller))
    assert r.status_code == 201, r.text
    return r.json()


def _move(client, headers, user, job_id, status, expect=200):
    r = client.patch(f"/jobs/{job_id}/status", json={"status": status}, headers=headers(user))
    assert r.status_code == expect, r.text
    return r.json()


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_register_login_and_approval(client, headers, admin):
    r = client.post("/auth/register", json={
        "email": "new-seller@test.local", "password": PASSWORD, "name": "새 판매자", "role": "seller",
    })
    assert r.status_code == 201, r.text
    seller = r.json()
    assert seller["approval_status"] == "pending"

    dup = client.post("/auth/register", json={
        "email": "new-seller@test.local", "password": PASSWORD, "name": "중복", "role": "seller",
    })
    assert dup.status_code == 409

    bad = client.post("/auth/login", data={"username": "new-seller@test.local", "password": "wrong-pass"})
    assert bad.status_code == 401

    r = client.post("/auth/login", data={"username": "new-seller@test.local", "password": PASSWORD})
    assert r.status_code == 200, r.text
    token = {"Authorization": f"Bearer {r.json()['access_token']}"}
    assert client.get("/auth/me", headers=token).json()["email"] == "new-seller@test.local"

    # 승인 전에는 업무 API 사용 불가
    r = client.post("/jobs", json={"title": "t", "address": "a", "budget_amount": 1000}, headers=token)
    assert r.status_code == 403

    r = client.post(f"/admin/users/{seller['id']}/approve", headers=headers(admin))
    assert r.status_code == 200
    assert r.json()["approval_status"] == "approved"
    assert client.get("/notifications/unread-count", headers=token).json() == {"unread": 1}


def test_admin_cannot_self_register(client, headers, seller):
    r = client.post("/auth/register", json={
        "email": "sneaky@test.local", "password": PASSWORD, "name": "관리자", "role": "admin",
    })
    assert r.status_code == 403, r.text
    assert client.post("/auth/login", data={"username": "sneaky@test.local", "password": PASSWORD}).status_code == 401

    r = client.post("/auth/register", json={
        "email": "buyer@test.local", "password": PASSWORD, "name": "고객", "role": "customer",
    })
    assert r.status_code == 201
    assert r.json()["approval_status"] == "approved"

    # 일반 계정으로는 관리자 API 불가
    r = client.post(
        "/points/admin/charge",
        json={"user_id": seller.id, "role": "seller", "amount": 10_000_000},
        headers=headers(seller),
    )
    assert r.status_code == 403


def test_ensure_admin_creates_once(client, db, make_user):
    from insteam import crud
    from insteam.errors import ConflictError

    admin, created = crud.ensure_admin(db, "ops@test.local", PASSWORD)
    assert created
    assert (admin.role, admin.approval_status) == ("admin", "approved")
    again, created = crud.ensure_admin(db, "ops@test.local", "other-pass")
    assert not created
    assert again.id == admin.id

    r = client.post("/auth/login", data={"username": "ops@test.local", "password": PASSWORD})
    assert r.status_code == 200

    make_user("seller", email="taken@test.local")
    with pytest.raises(ConflictError):
        crud.ensure_admin(db, "taken@test.local", PASSWORD)


def test_requires_token(client):
    assert client.get("/jobs").status_code == 401
    assert client.get("/jobs", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_full_job_flow(client, headers, admin, seller, contractor):
    _charge(client, headers, admin, seller, 150000)
    job = _create_job(client, headers, seller, amount=100000)
    assert job["status"] == "pending"
    assert len(job["id"]) == 6

    bal = client.get("/points/balance", params={"role": "seller"}, headers=headers(seller)).json()
    assert bal["balance"] == 50000

    open_ids = [j["id"] for j in client.get("/jobs/open", headers=headers(contractor)).json()]
    assert job["id"] in open_ids

    r = client.post(f"/jobs/{job['id']}/accept", headers=headers(contractor))
    assert r.status_code == 200, r.text
    assert r.json()["contractor_id"] == contractor.id

    # 판매자는 완료 처리 불가, 건너뛰기 불가
    _move(client, headers, seller, job["id"], "completed", expect=409)
    _move(client, headers, contractor, job["id"], "product_ready", expect=403)

    _move(client, headers, seller, job["id"], "product_ready")
    _move(client, headers, contractor, job["id"], "pickup_completed")
    _move(client, headers, seller, job["id"], "cancelled", expect=409)
    _move(client, headers, contractor, job["id"], "in_progress")
    done = _move(client, headers, contractor, job["id"], "completed")
    assert done["completed_at"] is not None
    assert [s["status"] for s in done["progress_steps"]][-1] == "completed"

    escrow = client.get(f"/jobs/{job['id']}/escrow", headers=headers(seller)).json()
    assert escrow["status"] == "pending"
    assert escrow["release_due_at"] is not None

    r = client.post(f"/admin/escrow/{job['id']}/release", headers=headers(admin))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "released"
    assert client.post(f"/admin/escrow/{job['id']}/release", headers=headers(admin)).status_code == 409

    bal = client.get("/points/balance", params={"role": "contractor"}, headers=headers(contractor)).json()
    assert bal["balance"] == 98000

    counts = client.get("/jobs/counts", headers=headers(seller)).json()
    assert counts["completed"] == 1
    assert counts["pending"] == 0


def test_insufficient_points_conflict(client, headers, seller):
    r = client.post("/jobs", json={"title": "t", "address": "a", "budget_amount": 1000}, headers=headers(seller))
    assert r.status_code == 409
    assert client.get("/jobs", headers=headers(seller)).json() == []


def test_delete_pending_job_refunds(client, headers, admin, seller):
    _charge(client, headers, admin, seller, 30000)
    job = _create_job(client, headers, seller, amount=30000)
    r = client.delete(f"/jobs/{job['id']}", headers=headers(seller))
    assert r.status_code == 204
    assert client.get(f"/jobs/{job['id']}", headers=headers(seller)).status_code == 404
    bal = client.get("/points/balance", params={"role": "seller"}, headers=headers(seller)).json()
    assert bal["balance"] == 30000


def test_contractor_cancellation_endpoints(client, headers, admin, seller, contractor):
    _charge(client, headers, admin, seller, 100000)
    job = _create_job(client, headers, seller)
    client.post(f"/jobs/{job['id']}/accept", headers=headers(contractor))

    check = client.get(f"/cancellations/jobs/{job['id']}/check", headers=headers(contractor)).json()
    assert check["can_cancel"] is True
    assert check["fee_amount"] == 0

    r = client.post(f"/cancellations/jobs/{job['id']}", json={"reason": "일정 충돌"}, headers=headers(contractor))
    assert r.status_code == 201, r.text
    assert client.get(f"/jobs/{job['id']}", headers=headers(seller)).json()["status"] == "cancelled"
    bal = client.get("/points/balance", params={"role": "seller"}, headers=headers(seller)).json()
    assert bal["balance"] == 100000
    assert len(client.get("/cancellations/me/today", headers=headers(contractor)).json()) == 1

    r = client.post(f"/cancellations/jobs/{job['id']}", json={"reason": "again"}, headers=headers(contractor))
    assert r.status_code == 409

    stats = client.get("/cancellations/admin/stats", headers=headers(admin)).json()
    assert stats["total_cancellations"] == 1
    assert client.get("/cancellations/admin/stats", headers=headers(seller)).status_code == 403


def test_compensation_endpoint(client, headers, admin, seller, contractor):
    _charge(client, headers, admin, seller, 100000)
    job = _create_job(client, headers, seller)
    client.post(f"/jobs/{job['id']}/accept", headers=headers(contractor))
    _move(client, headers, seller, job["id"], "product_preparing")
    _move(client, headers, contractor, job["id"], "product_not_ready")
    _move(client, headers, admin, job["id"], "compensation_completed", expect=409)

    r = client.post(
        f"/compensations/jobs/{job['id']}",
        json={"compensation_type": "product_not_ready", "reason": "미입고"},
        headers=headers(contractor),
    )
    assert r.status_code == 403

    r = client.post(
        f"/compensations/jobs/{job['id']}",
        json={"compensation_type": "product_not_ready", "reason": "미입고"},
        headers=headers(admin),
    )
    assert r.status_code == 201, r.text
    assert r.json()["amount"] == 30000
    assert client.get(f"/jobs/{job['id']}", headers=headers(seller)).json()["status"] == "compensation_completed"


def test_settings_admin_only_and_ranges(client, headers, admin, seller):
    assert client.get("/settings", headers=headers(seller)).json()["escrow_auto_release_hours"] == 48
    r = client.put("/settings/escrow", json={"escrow_auto_release_hours": 72}, headers=headers(seller))
    assert r.status_code == 403
    r = client.put("/settings/escrow", json={"escrow_auto_release_hours": 500}, headers=headers(admin))
    assert r.status_code == 400
    r = client.put("/settings/escrow", json={"escrow_auto_release_hours": 72}, headers=headers(admin))
    assert r.status_code == 200
    assert r.json()["escrow_auto_release_hours"] == 72


def test_survey_public_endpoints(client, headers, admin, seller, contractor):
    _charge(client, headers, admin, seller, 100000)
    job = _create_job(client, headers, seller)
    client.post(f"/jobs/{job['id']}/accept", headers=headers(contractor))
    _move(client, headers, seller, job["id"], "product_ready")
    for s in ("pickup_completed", "in_progress", "completed"):
        _move(client, headers, contractor, job["id"], s)

    survey = client.post(f"/surveys/jobs/{job['id']}", headers=headers(seller)).json()
    token = survey["access_token"]
    # 로그인 없이 조회/응답
    assert client.get(f"/surveys/{token}").json()["is_completed"] is False
    r = client.post(f"/surveys/{token}", json={"responses": {"overall": 5, "kindness": 5}, "comment": "친절"})
    assert r.status_code == 200, r.text
    assert client.post(f"/surveys/{token}", json={"responses": {"overall": 5}}).status_code == 409
    assert client.get("/surveys/unknown-token").status_code == 404

    rating = client.get(f"/surveys/contractors/{contractor.id}/rating", headers=headers(seller)).json()
    assert rating["average_rating"] == 5.0


def test_urgent_fee_quote(client, headers, seller):
    when = (datetime.now(timezone.utc) + timedelta(hours=6)).isoformat()
    r = client.post("/pricing/urgent-fee", json={"total": 10000, "scheduled_at": when}, headers=headers(seller))
    assert r.status_code == 200, r.text
    assert r.json() == {"urgent_fee": 5000, "additional_percentage": 50.0}


def test_chat_endpoints(client, headers, admin, seller, contractor):
    _charge(client, headers, admin, seller, 100000)
    job = _create_job(client, headers, seller)
    client.post(f"/jobs/{job['id']}/accept", headers=headers(contractor))

    rooms = client.get("/chat/rooms", headers=headers(seller)).json()
    assert len(rooms) == 1
    room_id = rooms[0]["id"]

    r = client.post(f"/chat/rooms/{room_id}/messages", json={"content": "안녕하세요"}, headers=headers(seller))
    assert r.status_code == 201, r.text
    assert client.get("/chat/rooms", headers=headers(contractor)).json()[0]["unread_count"] == 1
    assert client.post(f"/chat/rooms/{room_id}/read", headers=headers(contractor)).json() == {"marked": 1}
    assert client.get("/chat/rooms", headers=headers(contractor)).json()[0]["unread_count"] == 0


def test_manual_charge_endpoints(client, headers, admin, seller):
    r = client.post("/manual-charges", json={"amount": 20000}, headers=headers(seller))
    assert r.status_code == 201, r.text
    req_id = r.json()["id"]
    assert client.get("/notifications/admin", headers=headers(admin)).json()[0]["type"] == "manual_charge_request"

    r = client.post(
        f"/manual-charges/admin/{req_id}/complete",
        json={"deposit_name": "판매자", "deposit_amount": 20000, "deposit_date": "2025-02-03T10:00:00+09:00"},
        headers=headers(admin),
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"
    bal = client.get("/points/balance", params={"role": "seller"}, headers=headers(seller)).json()
    assert bal["balance"] == 20000
