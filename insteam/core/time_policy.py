# insteam/core/time_policy.py
# 시간 유틸 (UTC 저장, KST 기준 '오늘' 판정)
# - 모든 반환값은 timezone-aware UTC(datetime)입니다.
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

UTC = timezone.utc
KST = timezone(timedelta(hours=9))

# 테스트에서 현재시각을 고정하기 위한 오버라이드 저장소
_TEST_NOW_UTC: Optional[datetime] = None


def set_now_utc_for_testing(dt: Optional[datetime]) -> None:
    """
    dt가 None이면 오버라이드 해제. dt가 naive면 UTC로 간주.
    """
    global _TEST_NOW_UTC
    if dt is None:
        _TEST_NOW_UTC = None
    else:
        _TEST_NOW_UTC = dt if dt.tzinfo else dt.replace(tzinfo=UTC)


def _utcnow() -> datetime:
    """
    시스템 공용 UTC now 헬퍼. 테스트 중이면 고정값을 반환.
    """
    if _TEST_NOW_UTC is not None:
        return _TEST_NOW_UTC
    return datetime.now(UTC)


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    DB(SQLite)에서 나온 naive datetime 은 UTC 로 간주해서 aware 로 바꾼다.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def kst_day_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    KST 달력 기준 '오늘'의 [00:00, 다음날 00:00) 구간을 UTC 로 반환.
    """
    ref = _as_utc(now) or _utcnow()
    kst = ref.astimezone(KST)
    start_kst = kst.replace(hour=0, minute=0, second=0, microsecond=0)
    end_kst = start_kst + timedelta(days=1)
    return start_kst.astimezone(UTC), end_kst.astimezone(UTC)


def hours_between(earlier: datetime, later: datetime) -> float:
    return (_as_utc(later) - _as_utc(earlier)).total_seconds() / 3600.0
