# tests/conftest.py
import itertools
import os
from datetime import timedelta

# 앱 import 전에 설정 (워커/파일 DB 비활성)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["INSTEAM_ESCROW_WORKER"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from insteam import crud, database, models, schemas
from insteam.core.time_policy import set_now_utc_for_testing
from insteam.logic import points
from insteam.main import app
from insteam.models import PointRole
from insteam.security import create_access_token, get_password_hash

PASSWORD = "pass1234"
_HASH = get_password_hash(PASSWORD)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    database.init_db(eng)
    yield eng
    database.Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def _reset_clock():
    set_now_utc_for_testing(None)
    yield
    set_now_utc_for_testing(None)


@pytest.fixture
def client(session_factory):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[database.get_db] = _get_db
    # lifespan 은 띄우지 않는다 (테이블은 engine fixture 가 생성)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role="seller", *, approved=True, **fields):
        n = next(counter)
        user = models.User(
            email=fields.pop("email", f"{role}{n}@test.local"),
            hashed_password=_HASH,
            name=fields.pop("name", f"{role}{n}"),
            role=role,
            approval_status="approved" if approved else "pending",
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def seller(make_user):
    return make_user("seller")


@pytest.fixture
def contractor(make_user):
    return make_user("contractor")


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def make_job(db):
    """판매자에게 필요한 만큼 충전 후 budget_amount 로 작업 생성."""

    def _make(seller, amount=100000, scheduled_at=None, charge=True, **fields):
        if charge:
            points.charge_points(db, seller.id, PointRole.SELLER, amount)
        payload = schemas.JobCreate(
            title=fields.pop("title", "거실 블라인드 설치"),
            address=fields.pop("address", "서울시 강남구 테헤란로 1"),
            scheduled_at=scheduled_at,
            budget_amount=amount,
            **fields,
        )
        return crud.create_job(db, seller, payload)

    return _make


def auth_headers(user) -> dict:
    token = create_access_token(
        {"sub": str(user.id), "role": user.role}, expires_delta=timedelta(days=3650),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers
