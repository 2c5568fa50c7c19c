from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

E_VALIDATION = "E_VALIDATION"
E_AI_PARSE = "E_AI_PARSE"
E_AI_UPSTREAM = "E_AI_UPSTREAM"
E_INTERNAL = "E_INTERNAL"
E_METHOD_NOT_ALLOWED = "E_METHOD_NOT_ALLOWED"


class ApiError(Exception):
    """Error raised at the request boundary, carrying status and error code."""

    def __init__(self, status: int, error_code: str, message: str, details: Any = None):
        super().__init__(message)
        self.status = status
        self.error_code = error_code
        self.message = message
        self.details = details


def build_error_response(
    error: BaseException,
    request_id: str,
    include_details: bool = False,
    default_status: int = 500,
    default_error_code: str = E_INTERNAL,
) -> Dict[str, Any]:
    """Client-safe error body. Details only when include_details is set."""
    if isinstance(error, ApiError):
        response: Dict[str, Any] = {
            "status": error.status,
            "errorCode": error.error_code,
            "message": error.message,
            "requestId": request_id,
        }
        if include_details and error.details is not None:
            response["details"] = error.details
        return response

    response = {
        "status": default_status,
        "errorCode": default_error_code,
        "message": str(error) or "An unexpected error occurred",
        "requestId": request_id,
    }
    if include_details:
        response["details"] = {"name": type(error).__name__, "originalError": repr(error)}
    return response


def log_error(
    error: BaseException,
    request_id: str,
    context: Optional[Dict[str, Any]] = None,
    include_stack: bool = False,
) -> None:
    error_code = error.error_code if isinstance(error, ApiError) else E_INTERNAL
    data = {"requestId": request_id, "errorCode": error_code, "message": str(error) or "Unknown error"}
    data.update(context or {})
    log.error("[Error] %s", json.dumps(data, ensure_ascii=False, default=str), exc_info=error if include_stack else None)
