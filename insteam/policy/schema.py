from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class EscrowPolicy:
    # 시공 완료 후 시공자에게 자동 지급되기까지의 시간
    auto_release_hours: int


@dataclass(frozen=True)
class CancellationPolicy:
    """시공자 작업 취소 정책."""
    max_cancellation_hours: int      # 수락 후 취소 가능 시간
    max_daily_cancellations: int     # 하루 무료 취소 횟수
    cancellation_fee_rate: float     # percent (5 = 5%)


@dataclass(frozen=True)
class CompensationPolicy:
    product_not_ready_rate: float
    customer_absent_rate: float
    schedule_change_fee_rate: float


@dataclass(frozen=True)
class FeePolicy:
    seller_commission_rate: float
    contractor_commission_rate: float


@dataclass(frozen=True)
class LevelRule:
    level: int
    name: str
    completed_jobs_count: int
    benefits: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RatingBand:
    """
    평점 구간 [min_rating, max_rating). max_rating=None 이면 상한 없음.
    value 는 수수료율(%) 또는 정지 일수(-1 = 영구정지).
    """
    min_rating: float
    max_rating: Optional[float]
    value: float
    description: str = ""


@dataclass(frozen=True)
class RatingPolicy:
    default_commission_rate: float
    commission_bands: List[RatingBand] = field(default_factory=list)
    suspension_bands: List[RatingBand] = field(default_factory=list)


@dataclass(frozen=True)
class EmergencyBucket:
    hours_within: int
    additional_percentage: float


@dataclass(frozen=True)
class PricingPolicy:
    travel_fee: int
    surcharge_unit: int
    emergency: List[EmergencyBucket] = field(default_factory=list)


@dataclass(frozen=True)
class PolicyBundle:
    escrow: EscrowPolicy
    cancellation: CancellationPolicy
    compensation: CompensationPolicy
    fees: FeePolicy
    levels: List[LevelRule]
    rating: RatingPolicy
    pricing: PricingPolicy
