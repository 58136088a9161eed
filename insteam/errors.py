# insteam/errors.py
# 도메인 예외 (라우터에서 _translate_error 로 HTTP 상태코드로 변환)


class NotFoundError(Exception):
    pass


class ConflictError(Exception):
    pass


class InvalidTransition(ConflictError):
    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"invalid transition: {from_status} -> {to_status}")


class InsufficientPoints(ConflictError):
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"insufficient points: required={required}, available={available}")


class PermissionDenied(Exception):
    pass


class PolicyViolation(ValueError):
    pass
