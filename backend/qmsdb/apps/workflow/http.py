"""
Single mapping point from typed workflow failures to HTTP responses.

Route handlers never catch `WorkflowError`; the app-level handler below
turns each class into its status code and a `{"error", "detail"}` body.
"""

from __future__ import annotations

import logging
from typing import Dict, Type

from fastapi import Request, status
from fastapi.responses import JSONResponse

from .errors import (
    Forbidden,
    InternalError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
    WorkflowError,
)

logger = logging.getLogger(__name__)

GENERIC_INTERNAL_MESSAGE = "Unable to complete the request"

STATUS_CODES: Dict[Type[WorkflowError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    Forbidden: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransition: status.HTTP_409_CONFLICT,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(exc: WorkflowError) -> int:
    for klass in type(exc).__mro__:
        code = STATUS_CODES.get(klass)
        if code is not None:
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_response(exc: WorkflowError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        body = {"error": "internal_error", "detail": [{"field": "", "reason": GENERIC_INTERNAL_MESSAGE}]}
    else:
        body = {"error": exc.code, "detail": list(exc.detail)}
    return JSONResponse(status_code=status_code, content=body)


def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    if status_code_for(exc) >= 500:
        logger.error(
            "Workflow request failed",
            extra={"path": request.url.path, "method": request.method, "code": exc.code},
        )
    return to_response(exc)
