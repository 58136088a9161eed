# 에러 타입


class PolicyConfigError(RuntimeError):
    pass

class PolicyConfigValidationError(PolicyConfigError):
    pass
