# insteam/models.py
# 커튼/블라인드 시공 마켓플레이스: 사용자/작업/포인트/에스크로/정책/알림
from sqlalchemy import (
    Column, Integer, String, DateTime, Float, ForeignKey, Text, Boolean,
    JSON, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
import enum

from .database import Base
from .core.time_policy import _utcnow


# -------------------------------------------------------
# 🏷️ 상태/역할 Enum (DB에는 .value 문자열로 저장)
# -------------------------------------------------------
class UserRole(str, enum.Enum):
    SELLER = "seller"
    CONTRACTOR = "contractor"
    ADMIN = "admin"
    CUSTOMER = "customer"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PRODUCT_PREPARING = "product_preparing"
    PRODUCT_READY = "product_ready"
    PICKUP_COMPLETED = "pickup_completed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    # 예외 상태
    PRODUCT_NOT_READY = "product_not_ready"
    CUSTOMER_ABSENT = "customer_absent"
    SCHEDULE_CHANGED = "schedule_changed"
    COMPENSATION_COMPLETED = "compensation_completed"
    RESCHEDULE_REQUESTED = "reschedule_requested"


class PointRole(str, enum.Enum):
    SELLER = "seller"
    CONTRACTOR = "contractor"


class TransactionType(str, enum.Enum):
    CHARGE = "charge"
    WITHDRAW = "withdraw"
    ESCROW = "escrow"
    RELEASE = "release"
    REFUND = "refund"
    PAYMENT = "payment"
    COMPENSATION = "compensation"
    DEDUCTION = "deduction"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EscrowStatus(str, enum.Enum):
    PENDING = "pending"
    RELEASED = "released"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


class CompensationType(str, enum.Enum):
    PRODUCT_NOT_READY = "product_not_ready"
    CUSTOMER_ABSENT = "customer_absent"


class ChargeRequestStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# -------------------------------------------------------
# 🧩 User (판매자/시공자/관리자/고객 공용)
# -------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    role = Column(String(16), nullable=False, index=True)

    approval_status = Column(String(16), nullable=False, default=ApprovalStatus.PENDING.value)
    rejection_reason = Column(String, nullable=True)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # 판매자
    company_name = Column(String, nullable=True)
    pickup_company_name = Column(String, nullable=True)
    pickup_phone = Column(String, nullable=True)
    pickup_address = Column(String, nullable=True)

    # 시공자: 사업자/정산 정보
    business_name = Column(String, nullable=True)
    business_number = Column(String, nullable=True)
    business_address = Column(String, nullable=True)
    service_areas = Column(JSON, nullable=True)
    bank_name = Column(String, nullable=True)
    bank_account = Column(String, nullable=True)
    account_holder = Column(String, nullable=True)

    # 시공자: 등급/평점/정지
    level = Column(Integer, default=1, nullable=False)
    rating = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    completed_jobs = Column(Integer, default=0, nullable=False)
    suspended_until = Column(DateTime(timezone=True), nullable=True)
    permanently_suspended = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<User(email='{self.email}', role='{self.role}', status={self.approval_status})>"


# -------------------------------------------------------
# 🧵 Job (시공 작업) + 품목 + 진행 이력
# -------------------------------------------------------
class Job(Base):
    __tablename__ = "jobs"

    id = Column(String(6), primary_key=True)  # 6자리 대문자+숫자
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String, nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)

    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    contractor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    customer_name = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)

    status = Column(String(32), nullable=False, default=JobStatus.PENDING.value, index=True)

    travel_fee = Column(Integer, default=0, nullable=False)
    urgent_fee = Column(Integer, default=0, nullable=False)
    urgent_fee_percent = Column(Float, default=0.0, nullable=False)
    escrow_amount = Column(Integer, default=0, nullable=False)
    final_amount = Column(Integer, nullable=True)

    pickup_company_name = Column(String, nullable=True)
    pickup_phone = Column(String, nullable=True)
    pickup_address = Column(String, nullable=True)
    requirements = Column(Text, nullable=True)

    accepted_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String, nullable=True)
    customer_satisfaction = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    items = relationship("JobItem", back_populates="job", cascade="all, delete-orphan", order_by="JobItem.id")
    progress_steps = relationship(
        "JobProgressStep", back_populates="job", cascade="all, delete-orphan", order_by="JobProgressStep.id"
    )
    seller = relationship("User", foreign_keys=[seller_id])
    contractor = relationship("User", foreign_keys=[contractor_id])

    __table_args__ = (
        Index("ix_job_contractor_scheduled", "contractor_id", "scheduled_at"),
        CheckConstraint("escrow_amount >= 0", name="ck_job_escrow_nonneg"),
    )


class JobItem(Base):
    __tablename__ = "job_items"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(6), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Integer, nullable=False, default=0)
    total_price = Column(Integer, nullable=False, default=0)

    job = relationship("Job", back_populates="items")


class JobProgressStep(Base):
    __tablename__ = "job_progress_steps"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(6), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(32), nullable=False)
    actor_id = Column(Integer, nullable=True)
    note = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    job = relationship("Job", back_populates="progress_steps")


# -------------------------------------------------------
# 💰 포인트 잔액 / 거래 / 에스크로
# -------------------------------------------------------
class PointBalance(Base):
    __tablename__ = "point_balances"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(16), nullable=False)  # 'seller' | 'contractor'
    balance = Column(Integer, default=0, nullable=False)
    total_charged = Column(Integer, default=0, nullable=False)
    total_withdrawn = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_point_balance_user_role"),
        CheckConstraint("balance >= 0", name="ck_point_balance_nonneg"),
    )


class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(String(16), nullable=False)
    type = Column(String(16), nullable=False)
    amount = Column(Integer, nullable=False)          # +적립, -차감
    balance_after = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=TransactionStatus.COMPLETED.value)
    description = Column(String, nullable=True)

    job_id = Column(String(6), nullable=True, index=True)
    deduction_type = Column(String, nullable=True)
    compensation_type = Column(String, nullable=True)
    admin_id = Column(Integer, nullable=True)
    admin_note = Column(String, nullable=True)

    # 출금 계좌
    bank_name = Column(String, nullable=True)
    bank_account = Column(String, nullable=True)
    account_holder = Column(String, nullable=True)

    related_transaction_id = Column(Integer, nullable=True)
    idempotency_key = Column(String, unique=True, index=True, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_point_user_created", "user_id", "role", "created_at"),
    )


class PointEscrow(Base):
    __tablename__ = "point_escrows"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(6), unique=True, index=True, nullable=False)  # 작업 삭제 후에도 기록 유지
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    contractor_id = Column(Integer, nullable=True)
    amount = Column(Integer, nullable=False)            # 현재 보관 중인 금액
    original_amount = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=EscrowStatus.PENDING.value, index=True)
    release_due_at = Column(DateTime(timezone=True), nullable=True, index=True)
    released_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_escrow_amount_nonneg"),
    )


# -------------------------------------------------------
# ⚙️ 시스템 설정 (단일 행)
# -------------------------------------------------------
class SystemSettings(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True)
    escrow_auto_release_hours = Column(Integer, nullable=False)

    max_cancellation_hours = Column(Integer, nullable=False)
    max_daily_cancellations = Column(Integer, nullable=False)
    cancellation_fee_rate = Column(Float, nullable=False)

    product_not_ready_rate = Column(Float, nullable=False)
    customer_absent_rate = Column(Float, nullable=False)
    schedule_change_fee_rate = Column(Float, nullable=False)

    seller_commission_rate = Column(Float, nullable=False)
    contractor_commission_rate = Column(Float, nullable=False)

    travel_fee = Column(Integer, nullable=False, default=0)

    updated_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)


# -------------------------------------------------------
# 🚫 취소 / 보상 / 일정 변경 기록
# -------------------------------------------------------
class JobCancellation(Base):
    __tablename__ = "job_cancellations"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(6), nullable=False, index=True)
    contractor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reason = Column(String, nullable=True)
    cancellation_number = Column(Integer, nullable=False)
    total_cancellations_today = Column(Integer, nullable=False, default=0)
    fee_amount = Column(Integer, nullable=False, default=0)
    fee_rate = Column(Float, nullable=False, default=0.0)
    cancelled_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)


class JobCompensation(Base):
    __tablename__ = "job_compensations"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(6), nullable=False, index=True)
    contractor_id = Column(Integer, nullable=False, index=True)
    seller_id = Column(Integer, nullable=False)
    compensation_type = Column(String(32), nullable=False)
    amount = Column(Integer, nullable=False)
    rate = Column(Float, nullable=False)
    reason = Column(String, nullable=True)
    processed_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class JobScheduleChange(Base):
    __tablename__ = "job_schedule_changes"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(6), nullable=False, index=True)
    contractor_id = Column(Integer, nullable=False)
    old_date = Column(DateTime(timezone=True), nullable=False)
    new_date = Column(DateTime(timezone=True), nullable=False)
    reason = Column(String, nullable=True)
    fee_amount = Column(Integer, nullable=False, default=0)
    fee_rate = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


# -------------------------------------------------------
# 🏅 시공자 등급 / 평점 정책
# -------------------------------------------------------
class ContractorLevel(Base):
    __tablename__ = "contractor_levels"

    id = Column(Integer, primary_key=True, index=True)
    level = Column(Integer, unique=True, nullable=False)
    name = Column(String, nullable=False)
    completed_jobs_count = Column(Integer, nullable=False, default=0)
    benefits = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class RatingCommissionPolicy(Base):
    __tablename__ = "rating_commission_policies"

    id = Column(Integer, primary_key=True, index=True)
    min_rating = Column(Float, nullable=False)
    max_rating = Column(Float, nullable=True)   # None = 상한 없음
    commission_rate = Column(Float, nullable=False)
    description = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class RatingSuspensionPolicy(Base):
    __tablename__ = "rating_suspension_policies"

    id = Column(Integer, primary_key=True, index=True)
    min_rating = Column(Float, nullable=False)
    max_rating = Column(Float, nullable=True)
    suspension_days = Column(Integer, nullable=False)  # -1 = 영구정지
    description = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


# -------------------------------------------------------
# ⭐ 고객 만족도 조사
# -------------------------------------------------------
class SatisfactionSurvey(Base):
    __tablename__ = "satisfaction_surveys"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(6), ForeignKey("jobs.id"), unique=True, nullable=False)
    contractor_id = Column(Integer, nullable=True, index=True)
    customer_name = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    access_token = Column(String, unique=True, index=True, nullable=False)
    responses = Column(JSON, nullable=True)
    overall_rating = Column(Integer, nullable=True)
    comment = Column(Text, nullable=True)
    is_completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)


# -------------------------------------------------------
# 💬 채팅
# -------------------------------------------------------
class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(6), ForeignKey("jobs.id"), unique=True, nullable=False)
    participants = Column(JSON, nullable=False, default=list)  # user_id 목록
    last_message = Column(String, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    messages = relationship("ChatMessage", back_populates="room", cascade="all, delete-orphan",
                            order_by="ChatMessage.id")


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, nullable=False)
    sender_name = Column(String, nullable=True)
    sender_role = Column(String(16), nullable=True)
    content = Column(Text, nullable=False)
    message_type = Column(String(8), nullable=False, default="text")  # text | image
    image_url = Column(String, nullable=True)
    read_by = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    room = relationship("ChatRoom", back_populates="messages")


# -------------------------------------------------------
# 🔔 알림
# -------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    type = Column(String(16), nullable=False, default="info")  # info|success|warning|error
    is_read = Column(Boolean, default=False, nullable=False)
    action_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class AdminNotification(Base):
    __tablename__ = "admin_notifications"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(32), nullable=False)  # manual_charge_request|system_alert|user_issue
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    user_id = Column(Integer, nullable=True)
    user_name = Column(String, nullable=True)
    amount = Column(Integer, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_by = Column(Integer, nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    action_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


# -------------------------------------------------------
# 🏦 무통장 입금 충전 요청
# -------------------------------------------------------
class ManualChargeRequest(Base):
    __tablename__ = "manual_charge_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_name = Column(String, nullable=True)
    user_email = Column(String, nullable=True)
    amount = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=ChargeRequestStatus.PENDING.value)

    deposit_name = Column(String, nullable=True)
    deposit_amount = Column(Integer, nullable=True)
    deposit_date = Column(DateTime(timezone=True), nullable=True)
    admin_note = Column(String, nullable=True)
    cancel_reason = Column(String, nullable=True)
    processed_by = Column(Integer, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_manual_charge_amount_positive"),
    )


# -------------------------------------------------------
# ⏱️ 긴급 할증 구간
# -------------------------------------------------------
class EmergencySetting(Base):
    __tablename__ = "emergency_settings"

    id = Column(Integer, primary_key=True, index=True)
    hours_within = Column(Integer, unique=True, nullable=False)
    additional_percentage = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
