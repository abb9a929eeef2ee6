"""
Mapping from pipeline errors to HTTP responses.
"""

from fastapi import HTTPException, status

from blox_pipeline.jobs.errors import (
    InvalidRequestError,
    JobConflictError,
    NotFoundError,
    PipelineError,
    StatusTransitionError,
)

STATUS_BY_ERROR: list[tuple[type[PipelineError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (JobConflictError, status.HTTP_409_CONFLICT),
    (StatusTransitionError, status.HTTP_409_CONFLICT),
    (InvalidRequestError, status.HTTP_400_BAD_REQUEST),
]


def http_error(error: PipelineError) -> HTTPException:
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=code, detail=str(error))
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
