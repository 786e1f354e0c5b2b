from wooffy_api.schemas.common import ErrorOut


_ERROR_EXAMPLES: dict[int, tuple[str, str]] = {
    400: ("MISSING_FIELDS", "Missing required fields"),
    401: ("UNAUTHORIZED", "Authentication required"),
    403: ("UNAUTHORIZED", "Unauthorized"),
    404: ("NOT_FOUND", "Resource not found"),
    409: ("ALREADY_REDEEMED", "Offer already redeemed"),
    429: ("RATE_LIMITED", "Too many failed attempts. Please try again later."),
    500: ("INTERNAL_ERROR", "An error occurred. Please try again."),
}


def error_responses(*status_codes: int) -> dict[int, dict]:
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        code, message = _ERROR_EXAMPLES.get(status_code, ("HTTP_ERROR", "HTTP error"))
        responses[status_code] = {
            "model": ErrorOut,
            "description": message,
            "content": {
                "application/json": {
                    "example": {
                        "success": False,
                        "error": message,
                        "code": code,
                        "request_id": "request-id",
                    }
                }
            },
        }
    return responses
