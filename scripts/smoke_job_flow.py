# scripts/smoke_job_flow.py
# 떠 있는 서버에 대해 판매자 → 시공자 → 완료 → 에스크로 지급까지 한 바퀴
import json
import os
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import requests

CANDIDATES: list[str] = []
env_base = os.getenv("API_BASE_URL")
if env_base:
    CANDIDATES.append(env_base.rstrip("/"))
CANDIDATES += [
    "http://127.0.0.1:8000",
    "http://localhost:8000",
]

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@insteam.local")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin1234")


def pick_base() -> Optional[str]:
    for base in CANDIDATES:
        try:
            r = requests.get(f"{base}/health", timeout=1.5)
            if r.status_code == 200:
                return base
        except requests.RequestException:
            pass
    return None


def _pretty(resp: requests.Response) -> str:
    try:
        return json.dumps(resp.json(), ensure_ascii=False, indent=2)
    except ValueError:
        return resp.text


def call(method: str, path: str, token: Optional[str] = None, **kw) -> requests.Response:
    headers = kw.pop("headers", {})
    if token:
        headers["Authorization"] = f"Bearer {token}"
    r = requests.request(method, f"{BASE}{path}", headers=headers, timeout=5, **kw)
    print(f"\n{method} {path} -> {r.status_code}\n{_pretty(r)}")
    r.raise_for_status()
    return r


def register(role: str, tag: str, password: str = "pass1234") -> str:
    email = f"{role}-{tag}@smoke.local"
    call("POST", "/auth/register", json={"email": email, "password": password, "name": f"{role}-{tag}", "role": role})
    return email


def login(email: str, password: str) -> str:
    r = call("POST", "/auth/login", data={"username": email, "password": password})
    return r.json()["access_token"]


def main() -> None:
    tag = uuid.uuid4().hex[:6]

    # 관리자는 공개 가입 불가: 서버 DB 에 `python -m insteam.create_admin` 으로 먼저 생성
    try:
        admin = login(ADMIN_EMAIL, ADMIN_PASSWORD)
    except requests.HTTPError as e:
        raise SystemExit(f"❌ admin login failed ({e}). 먼저 `python -m insteam.create_admin` 을 실행하세요.")

    seller_email = register("seller", tag)
    contractor_email = register("contractor", tag)
    users = call("GET", "/admin/users", admin, params={"approval_status": "pending"}).json()
    for u in users:
        if u["email"] in (seller_email, contractor_email):
            call("POST", f"/admin/users/{u['id']}/approve", admin)
            if u["email"] == seller_email:
                call("POST", "/points/admin/charge", admin, json={"user_id": u["id"], "role": "seller", "amount": 200000})

    seller = login(seller_email, "pass1234")
    contractor = login(contractor_email, "pass1234")

    scheduled = (datetime.now(timezone.utc) + timedelta(days=3)).isoformat()
    job = call("POST", "/jobs", seller, json={
        "title": f"smoke {tag}", "address": "서울시 강남구", "scheduled_at": scheduled,
        "items": [{"name": "블라인드", "quantity": 2, "unit_price": 30000}],
    }).json()
    job_id = job["id"]

    call("POST", f"/jobs/{job_id}/accept", contractor)
    call("PATCH", f"/jobs/{job_id}/status", seller, json={"status": "product_ready"})
    for s in ("pickup_completed", "in_progress", "completed"):
        call("PATCH", f"/jobs/{job_id}/status", contractor, json={"status": s})
        time.sleep(0.1)

    call("GET", f"/jobs/{job_id}/escrow", seller)
    call("POST", f"/admin/escrow/{job_id}/release", admin)
    call("GET", "/points/balance", contractor, params={"role": "contractor"})
    print("\n✅ smoke flow done")


BASE = pick_base()

if __name__ == "__main__":
    if not BASE:
        raise SystemExit(
            "❌ API 서버에 연결할 수 없습니다. 서버가 떠 있고 포트를 확인하세요. "
            "필요하면 환경변수 API_BASE_URL 로 지정하세요."
        )
    print(f"✅ Using API base: {BASE}")
    main()
