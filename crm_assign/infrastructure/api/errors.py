"""Mapping of domain errors to HTTP responses."""

from fastapi import HTTPException

from crm_assign.domain.errors import (
    AssignmentError,
    DuplicateAssignment,
    InvalidTransition,
    NoOpTransfer,
    NotFound,
    StoreUnavailable,
)

_STATUS_BY_ERROR: list[tuple[type[AssignmentError], int]] = [
    (NotFound, 404),
    (DuplicateAssignment, 409),
    (InvalidTransition, 409),
    (NoOpTransfer, 409),
    (StoreUnavailable, 503),
]


def to_http_exception(error: AssignmentError) -> HTTPException:
    status_code = next(
        (code for kind, code in _STATUS_BY_ERROR if isinstance(error, kind)),
        422,
    )
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
    )
