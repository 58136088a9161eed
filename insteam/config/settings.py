# insteam/config/settings.py
# 환경변수 기반 런타임 설정
import logging
import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./insteam.db")

SECRET_KEY = os.getenv("INSTEAM_SECRET_KEY", "change-me-insteam-dev-secret")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("INSTEAM_TOKEN_MINUTES", "60"))

# "0" 이면 에스크로 워커를 띄우지 않음 (테스트/스크립트용)
ESCROW_WORKER_ENABLED = os.getenv("INSTEAM_ESCROW_WORKER", "1") != "0"
ESCROW_WORKER_INTERVAL_SECONDS = int(os.getenv("INSTEAM_ESCROW_WORKER_INTERVAL", "60"))

LOG_LEVEL = os.getenv("INSTEAM_LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("INSTEAM_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
