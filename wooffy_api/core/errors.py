class ApiError(Exception):
    """Failure with a stable client-facing message and a machine-readable code."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        code: str | None = None,
        extra: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.extra = extra or {}


def unauthorized(message: str = "Authentication required") -> ApiError:
    return ApiError(401, message, code="UNAUTHORIZED")


def forbidden(message: str = "Unauthorized") -> ApiError:
    return ApiError(403, message, code="UNAUTHORIZED")


def not_found(message: str) -> ApiError:
    return ApiError(404, message, code="NOT_FOUND")


def already_redeemed(message: str) -> ApiError:
    return ApiError(409, message, code="ALREADY_REDEEMED")


def bad_request(message: str, *, code: str = "INVALID_REQUEST") -> ApiError:
    return ApiError(400, message, code=code)
