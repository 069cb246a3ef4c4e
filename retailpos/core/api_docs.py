from retailpos.schemas.common import ErrorOut


_ERROR_DESCRIPTIONS: dict[int, tuple[str, str]] = {
    400: ("bad_request", "Business rule rejected the request"),
    401: ("unauthorized", "Missing or invalid credentials"),
    403: ("forbidden", "Insufficient permission for this action"),
    404: ("not_found", "Resource not found"),
    409: ("conflict", "Conflicts with the current state of the resource"),
    422: ("validation_error", "Validation failed"),
    429: ("rate_limited", "Too many requests"),
    500: ("internal_error", "Internal server error"),
}


def error_responses(*status_codes: int, path: str = "/") -> dict[int, dict]:
    """OpenAPI ``responses`` entries that document the shared error envelope."""
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        code, message = _ERROR_DESCRIPTIONS.get(status_code, ("http_error", "HTTP error"))
        example = {
            "error": {
                "code": code,
                "message": message,
                "request_id": "request-id",
                "path": path,
                "details": None,
            }
        }
        responses[status_code] = {
            "model": ErrorOut,
            "description": message,
            "content": {"application/json": {"example": example}},
        }
    return responses
