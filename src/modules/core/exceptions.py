"""Standardized API error bodies.

Every error leaving the API has the shape::

    {"type": "client_error", "errors": [{"code": ..., "detail": ..., "attr": ...}]}

``api_exception_handler`` applies it to DRF exceptions (configured as
``REST_FRAMEWORK["EXCEPTION_HANDLER"]``); views use ``error_response`` for
domain exceptions raised by the service layer.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from rest_framework import status as http_status
from rest_framework.response import Response
from rest_framework.views import exception_handler


def _error_type(status_code: int) -> str:
    if status_code >= 500:
        return "server_error"
    if status_code in (401, 403):
        return "authentication_error"
    if status_code == 400:
        return "validation_error"
    return "client_error"


def _flatten(detail: Any, attr: Optional[str] = None) -> List[Dict[str, Any]]:
    if isinstance(detail, dict):
        errors: List[Dict[str, Any]] = []
        for key, value in detail.items():
            nested = key if attr is None else f"{attr}.{key}"
            errors.extend(_flatten(value, None if key == "non_field_errors" else nested))
        return errors
    if isinstance(detail, list):
        errors = []
        for item in detail:
            errors.extend(_flatten(item, attr))
        return errors
    code = getattr(detail, "code", "error")
    return [{"code": code, "detail": str(detail), "attr": attr}]


def api_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    response = exception_handler(exc, context)
    if response is None:
        return None
    response.data = {
        "type": _error_type(response.status_code),
        "errors": _flatten(response.data),
    }
    return response


def error_response(
    code: str,
    detail: str,
    status_code: int = http_status.HTTP_400_BAD_REQUEST,
    errors: Optional[List[Dict[str, Any]]] = None,
) -> Response:
    """Build a response in the standard error shape."""
    return Response(
        {
            "type": _error_type(status_code),
            "errors": errors or [{"code": code, "detail": detail, "attr": None}],
        },
        status=status_code,
    )
