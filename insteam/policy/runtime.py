# insteam/policy/runtime.py
from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from insteam.policy.loader import load_policy_yaml
from insteam.policy.schema import PolicyBundle


@lru_cache(maxsize=4)
def _load_cached(path: Optional[str]) -> PolicyBundle:
    return load_policy_yaml(path)


def get_policy() -> PolicyBundle:
    """
    앱 전역 정책 기본값 접근자.
    - INSTEAM_POLICY_YAML 경로별로 1회만 로드
    - 런타임 조정값은 DB(system_settings)가 우선한다
    """
    return _load_cached(os.environ.get("INSTEAM_POLICY_YAML"))


def reload_policy_cache() -> PolicyBundle:
    """파일 내용이 바뀌었을 때 캐시를 비우고 다시 로드."""
    _load_cached.cache_clear()
    return get_policy()
