# ===== Insteam Schemas (Users / Jobs / Points / Policies) =====
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# 모델 Enum 재사용
from insteam.models import CompensationType, JobStatus, PointRole, UserRole


# ─────────────────────────────────────────────────────────
# 공통 ORM 베이스
# ─────────────────────────────────────────────────────────
class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------- Auth / User ----------------
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str
    phone: Optional[str] = None
    role: UserRole

    company_name: Optional[str] = None
    pickup_company_name: Optional[str] = None
    pickup_phone: Optional[str] = None
    pickup_address: Optional[str] = None

    business_name: Optional[str] = None
    business_number: Optional[str] = None
    business_address: Optional[str] = None
    service_areas: Optional[List[str]] = None
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    account_holder: Optional[str] = None


class UserOut(ORMModel):
    id: int
    email: EmailStr
    name: str
    phone: Optional[str] = None
    role: str
    approval_status: str
    rejection_reason: Optional[str] = None
    is_active: bool

    company_name: Optional[str] = None
    pickup_company_name: Optional[str] = None
    pickup_phone: Optional[str] = None
    pickup_address: Optional[str] = None

    business_name: Optional[str] = None
    service_areas: Optional[List[str]] = None

    level: int = 1
    rating: float = 0.0
    rating_count: int = 0
    completed_jobs: int = 0
    suspended_until: Optional[datetime] = None
    permanently_suspended: bool = False
    created_at: Optional[datetime] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RejectIn(BaseModel):
    reason: str = Field(min_length=1)


# ---------------- Job ----------------
class JobItemIn(BaseModel):
    name: str
    quantity: int = Field(ge=1)
    unit_price: int = Field(ge=0)


class JobItemOut(ORMModel):
    id: int
    name: str
    quantity: int
    unit_price: int
    total_price: int


class JobCreate(BaseModel):
    title: str
    description: Optional[str] = None
    address: str
    scheduled_at: Optional[datetime] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    items: List[JobItemIn] = Field(default_factory=list)
    # 지정하면 품목 합계 대신 이 금액을 에스크로
    budget_amount: Optional[int] = Field(default=None, ge=0)
    # None 이면 시스템 출장비 사용
    travel_fee: Optional[int] = Field(default=None, ge=0)
    pickup_company_name: Optional[str] = None
    pickup_phone: Optional[str] = None
    pickup_address: Optional[str] = None
    requirements: Optional[str] = None


class JobProgressStepOut(ORMModel):
    id: int
    status: str
    actor_id: Optional[int] = None
    note: Optional[str] = None
    created_at: datetime


class JobOut(ORMModel):
    id: str
    title: str
    description: Optional[str] = None
    address: str
    scheduled_at: Optional[datetime] = None
    status: JobStatus
    seller_id: int
    contractor_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    items: List[JobItemOut] = Field(default_factory=list)
    travel_fee: int
    urgent_fee: int
    urgent_fee_percent: float = 0.0
    escrow_amount: int
    final_amount: Optional[int] = None
    pickup_company_name: Optional[str] = None
    pickup_phone: Optional[str] = None
    pickup_address: Optional[str] = None
    requirements: Optional[str] = None
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    customer_satisfaction: Optional[int] = None
    created_at: Optional[datetime] = None
    progress_steps: List[JobProgressStepOut] = Field(default_factory=list)


class JobStatusUpdate(BaseModel):
    status: JobStatus
    note: Optional[str] = None


class FinalAmountIn(BaseModel):
    final_amount: int = Field(ge=0)


# ---------------- Points ----------------
class PointBalanceOut(ORMModel):
    user_id: int
    role: str
    balance: int
    total_charged: int
    total_withdrawn: int


class PointTransactionOut(ORMModel):
    id: int
    user_id: int
    role: str
    type: str
    amount: int
    balance_after: int
    status: str
    description: Optional[str] = None
    job_id: Optional[str] = None
    deduction_type: Optional[str] = None
    compensation_type: Optional[str] = None
    admin_id: Optional[int] = None
    admin_note: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    account_holder: Optional[str] = None
    related_transaction_id: Optional[int] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class PointEscrowOut(ORMModel):
    id: int
    job_id: str
    seller_id: int
    contractor_id: Optional[int] = None
    amount: int
    original_amount: int
    status: str
    release_due_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    notes: Optional[str] = None


class ChargeIn(BaseModel):
    role: PointRole
    amount: int = Field(gt=0)
    idempotency_key: Optional[str] = None


class AdminChargeIn(ChargeIn):
    user_id: int
    description: Optional[str] = None


class WithdrawalIn(BaseModel):
    role: PointRole
    amount: int = Field(gt=0)
    bank_name: str
    bank_account: str
    account_holder: str


class AdminNoteIn(BaseModel):
    note: Optional[str] = None


class DeductIn(BaseModel):
    user_id: int
    role: PointRole
    amount: int = Field(gt=0)
    deduction_type: str
    description: str
    job_id: Optional[str] = None


class ReleaseDueOut(BaseModel):
    released: int


# ---------------- Settings ----------------
class SystemSettingsOut(ORMModel):
    escrow_auto_release_hours: int
    max_cancellation_hours: int
    max_daily_cancellations: int
    cancellation_fee_rate: float
    product_not_ready_rate: float
    customer_absent_rate: float
    schedule_change_fee_rate: float
    seller_commission_rate: float
    contractor_commission_rate: float
    travel_fee: int
    updated_by: Optional[int] = None
    updated_at: Optional[datetime] = None


class EscrowHoursIn(BaseModel):
    escrow_auto_release_hours: int


class CancellationPolicyIn(BaseModel):
    max_cancellation_hours: int
    max_daily_cancellations: int
    cancellation_fee_rate: float


class CompensationPolicyIn(BaseModel):
    product_not_ready_rate: float
    customer_absent_rate: float
    schedule_change_fee_rate: float


class FeeSettingsIn(BaseModel):
    seller_commission_rate: float
    contractor_commission_rate: float


# ---------------- Cancellation ----------------
class CancellationCheckOut(BaseModel):
    can_cancel: bool
    reason: Optional[str] = None
    cancellation_number: int = 0
    total_cancellations_today: int = 0
    max_cancellation_hours: int = 0
    max_daily_cancellations: int = 0
    fee_amount: int = 0
    fee_rate: float = 0.0
    requires_fee: bool = False


class CancelJobIn(BaseModel):
    reason: str = Field(min_length=1)


class JobCancellationOut(ORMModel):
    id: int
    job_id: str
    contractor_id: int
    reason: Optional[str] = None
    cancellation_number: int
    total_cancellations_today: int = 0
    fee_amount: int
    fee_rate: float
    cancelled_at: datetime


class CancellationStatsOut(BaseModel):
    total_cancellations: int
    today_cancellations: int
    top_contractors: List[Dict[str, Any]]


# ---------------- Compensation ----------------
class CompensationIn(BaseModel):
    compensation_type: CompensationType
    reason: Optional[str] = None


class JobCompensationOut(ORMModel):
    id: int
    job_id: str
    contractor_id: int
    seller_id: int
    compensation_type: str
    amount: int
    rate: float
    reason: Optional[str] = None
    processed_by: Optional[int] = None
    created_at: datetime


class ScheduleChangeIn(BaseModel):
    new_date: datetime
    reason: Optional[str] = None


class JobScheduleChangeOut(ORMModel):
    id: int
    job_id: str
    contractor_id: int
    old_date: datetime
    new_date: datetime
    reason: Optional[str] = None
    fee_amount: int
    fee_rate: float
    created_at: datetime


# ---------------- Levels / Rating policy ----------------
class LevelIn(BaseModel):
    level: int = Field(ge=1)
    name: str
    completed_jobs_count: int = Field(ge=0)
    benefits: List[str] = Field(default_factory=list)
    is_active: bool = True


class LevelUpdate(BaseModel):
    name: Optional[str] = None
    completed_jobs_count: Optional[int] = Field(default=None, ge=0)
    benefits: Optional[List[str]] = None
    is_active: Optional[bool] = None


class LevelOut(ORMModel):
    id: int
    level: int
    name: str
    completed_jobs_count: int
    benefits: Optional[List[str]] = None
    is_active: bool


class CommissionPolicyIn(BaseModel):
    min_rating: float = Field(ge=0, le=5)
    max_rating: Optional[float] = Field(default=None, ge=0, le=5)
    commission_rate: float = Field(ge=0, le=100)
    description: Optional[str] = None
    is_active: bool = True


class CommissionPolicyOut(ORMModel):
    id: int
    min_rating: float
    max_rating: Optional[float] = None
    commission_rate: float
    description: Optional[str] = None
    is_active: bool


class SuspensionPolicyIn(BaseModel):
    min_rating: float = Field(ge=0, le=5)
    max_rating: Optional[float] = Field(default=None, ge=0, le=5)
    suspension_days: int = Field(ge=-1)
    description: Optional[str] = None
    is_active: bool = True


class SuspensionPolicyOut(ORMModel):
    id: int
    min_rating: float
    max_rating: Optional[float] = None
    suspension_days: int
    description: Optional[str] = None
    is_active: bool


# ---------------- Satisfaction ----------------
class SurveyQuestion(BaseModel):
    id: str
    text: str
    type: Literal["rating", "boolean", "text"]
    required: bool = True


class SurveyOut(ORMModel):
    id: int
    job_id: str
    contractor_id: Optional[int] = None
    access_token: str
    is_completed: bool
    overall_rating: Optional[int] = None
    responses: Optional[Dict[str, Any]] = None
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class SurveySubmitIn(BaseModel):
    responses: Dict[str, Any]
    comment: Optional[str] = None


# ---------------- Chat ----------------
class ChatRoomOut(ORMModel):
    id: int
    job_id: str
    participants: List[int]
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0


class ChatMessageIn(BaseModel):
    content: str = Field(min_length=1)
    message_type: Literal["text", "image"] = "text"
    image_url: Optional[str] = None

    @field_validator("image_url")
    @classmethod
    def _strip_url(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class ChatMessageOut(ORMModel):
    id: int
    room_id: int
    sender_id: int
    sender_name: Optional[str] = None
    sender_role: Optional[str] = None
    content: str
    message_type: str
    image_url: Optional[str] = None
    read_by: List[int] = Field(default_factory=list)
    created_at: datetime


# ---------------- Notifications ----------------
class NotificationOut(ORMModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str
    is_read: bool
    action_url: Optional[str] = None
    created_at: datetime


class AdminNotificationOut(ORMModel):
    id: int
    type: str
    title: str
    message: str
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    amount: Optional[int] = None
    is_read: bool
    read_by: Optional[int] = None
    read_at: Optional[datetime] = None
    created_at: datetime


# ---------------- Manual charge ----------------
class ManualChargeIn(BaseModel):
    amount: int = Field(gt=0)


class ManualChargeCompleteIn(BaseModel):
    deposit_name: str
    deposit_amount: int = Field(gt=0)
    deposit_date: datetime
    note: Optional[str] = None


class ManualChargeCancelIn(BaseModel):
    reason: str = Field(min_length=1)


class ManualChargeOut(ORMModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    amount: int
    status: str
    deposit_name: Optional[str] = None
    deposit_amount: Optional[int] = None
    deposit_date: Optional[datetime] = None
    admin_note: Optional[str] = None
    cancel_reason: Optional[str] = None
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    created_at: datetime


# ---------------- Pricing ----------------
class EmergencySettingIn(BaseModel):
    hours_within: int = Field(gt=0)
    additional_percentage: float = Field(ge=0, le=100)
    is_active: bool = True


class EmergencySettingUpdate(BaseModel):
    additional_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    is_active: Optional[bool] = None


class EmergencySettingOut(ORMModel):
    id: int
    hours_within: int
    additional_percentage: float
    is_active: bool


class TravelFeeIn(BaseModel):
    travel_fee: int = Field(ge=0)


class UrgentFeeQuery(BaseModel):
    total: int = Field(ge=0)
    scheduled_at: datetime


class UrgentFeeOut(BaseModel):
    urgent_fee: int
    additional_percentage: float
