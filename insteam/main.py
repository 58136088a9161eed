# insteam/main.py
from __future__ import annotations

import asyncio
import importlib
import importlib.util
import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from insteam import database
from insteam.config import settings
from insteam.config.feature_flags import FEATURE_FLAGS
from insteam.core.time_policy import set_now_utc_for_testing
from insteam.logic import points

settings.configure_logging()
logger = logging.getLogger(__name__)

DEV_DEBUG_ERRORS = False


# --------------------------------------------------
# 에스크로 자동 지급 워커
# --------------------------------------------------
def run_escrow_sweep() -> int:
    db = database.SessionLocal()
    try:
        return points.release_due_escrows(db)
    finally:
        db.close()


async def _escrow_worker(interval: int) -> None:
    while True:
        try:
            released = await asyncio.to_thread(run_escrow_sweep)
            if released:
                logger.info("[ESCROW_WORKER] released=%s", released)
        except Exception as e:
            # 에러가 나도 워커는 계속
            logger.exception("[ESCROW_WORKER] error: %s", e)
        await asyncio.sleep(interval)


def start_escrow_worker() -> Optional[asyncio.Task]:
    if not (settings.ESCROW_WORKER_ENABLED and FEATURE_FLAGS.get("ENABLE_ESCROW_WORKER", True)):
        logger.info("escrow worker disabled")
        return None
    return asyncio.create_task(_escrow_worker(settings.ESCROW_WORKER_INTERVAL_SECONDS))


@asynccontextmanager
async def lifespan(app: FastAPI):
    set_now_utc_for_testing(None)

    # ✅ 테이블 생성은 startup 시점
    try:
        database.init_db()
    except Exception as e:
        logger.warning("init_db failed: %s: %s", e.__class__.__name__, e)

    task = start_escrow_worker()
    yield

    if task is not None:
        task.cancel()
    set_now_utc_for_testing(None)


app = FastAPI(title="InsTeam API", version="1.0", lifespan=lifespan)


@app.exception_handler(StarletteHTTPException)
async def http_exc_handler(request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exc_handler(request, exc: Exception):
    logger.error("unhandled error at %s %s: %r", request.method, request.url.path, exc)
    if DEV_DEBUG_ERRORS:
        tb_tail = traceback.format_exc().splitlines()[-1]
        return JSONResponse(
            status_code=500,
            content={
                "detail": {
                    "error": exc.__class__.__name__,
                    "msg": str(exc),
                    "where": f"{request.method} {request.url.path}",
                    "trace_tail": tb_tail,
                }
            },
        )
    return JSONResponse(status_code=500, content={"detail": "Internal error"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _include_router_safe(module_path: str, attr_candidates: tuple[str, ...] = ("router",), *, label: str):
    full_mod = f"insteam.routers.{module_path}"
    try:
        if importlib.util.find_spec(full_mod) is None:
            logger.warning("Skip router [%s]: module not found: '%s'", label, full_mod)
            return

        mod = importlib.import_module(full_mod)
        router_obj = None
        for name in attr_candidates:
            router_obj = getattr(mod, name, None)
            if router_obj is not None:
                break

        if router_obj is None:
            logger.warning("Skip router [%s]: none of attrs %s found in %s", label, attr_candidates, full_mod)
            return

        app.include_router(router_obj)
        logger.info("Mounted router [%s] from %s", label, full_mod)

    except Exception as e:
        logger.warning("Skip router [%s]: %s: %s", label, e.__class__.__name__, e)


# --------------------------------------------------
# 1️⃣ 인증 / 사용자
# --------------------------------------------------
_include_router_safe("auth", label="auth")
_include_router_safe("users", label="admin.users")

# --------------------------------------------------
# 2️⃣ 작업 → 포인트 → 에스크로
# --------------------------------------------------
_include_router_safe("jobs", label="jobs")
_include_router_safe("points", label="points")
_include_router_safe("admin_escrow", label="admin.escrow")
_include_router_safe("manual_charges", label="manual_charges")
_include_router_safe("pricing", label="pricing")

# --------------------------------------------------
# 3️⃣ 취소 / 보상 / 만족도
# --------------------------------------------------
_include_router_safe("cancellations", label="cancellations")
_include_router_safe("compensations", label="compensations")
_include_router_safe("surveys", label="surveys")

# --------------------------------------------------
# 4️⃣ 채팅 / 알림
# --------------------------------------------------
_include_router_safe("chat", label="chat")
_include_router_safe("notifications", label="notifications")

# --------------------------------------------------
# 5️⃣ 관리자 정책
# --------------------------------------------------
_include_router_safe("settings", label="settings")
_include_router_safe("rating_policies", label="rating_policies")
_include_router_safe("levels", label="levels")


@app.get("/")
def root():
    return {"message": "InsTeam API is running 🚀"}


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/version")
def version():
    return {"app": "InsTeam API", "version": app.version}
