"""
Translation of planning errors into HTTP responses.

The core raises domain errors with messages written for people; the API
keeps the message and picks the status code.
"""

import logging

from fastapi import HTTPException, status

from ..core.practice.errors import (
    BusinessRuleError,
    NotFoundError,
    PracticePlanningError,
    ScopeError,
    StructuralViolationError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StructuralViolationError, status.HTTP_409_CONFLICT),
    (ScopeError, status.HTTP_403_FORBIDDEN),
    (BusinessRuleError, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


def to_http_exception(error: PracticePlanningError) -> HTTPException:
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in _STATUS_CODES:
        if isinstance(error, error_type):
            status_code = code
            break

    logger.warning(
        "Planning request rejected",
        extra={
            "error_type": type(error).__name__,
            "status_code": status_code,
            "error": str(error),
        },
    )
    return HTTPException(status_code=status_code, detail=str(error))
