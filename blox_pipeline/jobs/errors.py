"""
Error taxonomy shared by the producer, the queue and the handlers.

`recoverable` tells the queue whether redelivering the job can help.
"""


class PipelineError(Exception):
    """Base exception for pipeline operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class NotFoundError(PipelineError):
    """Target document or run is missing or not owned by the caller."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message, operation=operation, recoverable=False)


class InvalidPayloadError(PipelineError):
    """A job payload that can never be processed."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message, operation=operation, recoverable=False)


class InvalidRequestError(PipelineError):
    """A producer request rejected before anything was queued."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message, operation=operation, recoverable=False)


class JobConflictError(PipelineError):
    """Another job is already queued or running against the same target."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message, operation=operation, recoverable=False)


class StatusTransitionError(PipelineError):
    """A status write that would move the state machine illegally."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Illegal job status transition {current} -> {target}",
            operation="status_transition",
            recoverable=False,
        )
        self.current = current
        self.target = target


class ConcurrentUpdateError(PipelineError):
    """Optimistic write lost the race too many times."""


class TransientExternalError(PipelineError):
    """AI, provider or mail call failed or timed out."""

    def __init__(
        self, message: str, service: str, status_code: int | None = None, recoverable: bool = True
    ):
        super().__init__(message, operation=service, recoverable=recoverable)
        self.service = service
        self.status_code = status_code


def is_recoverable(error: BaseException) -> bool:
    """Errors without a classification are retried."""
    return bool(getattr(error, "recoverable", True))
