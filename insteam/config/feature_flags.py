# insteam/config/feature_flags.py
# Insteam Feature Flags (dev/ops convenience)

FEATURE_FLAGS = {
    # 신규 판매자/시공자 자동 승인 (개발 편의, 운영에서는 False)
    "AUTO_APPROVE_USERS": False,
    # 시공 완료 시 고객 만족도 조사 자동 생성
    "AUTO_SEND_SURVEY": True,
    # 에스크로 자동 지급 백그라운드 워커
    "ENABLE_ESCROW_WORKER": True,
}
