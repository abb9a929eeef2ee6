"""
Job status state machine shared by documents and import runs.

    idle -> queued -> processing -> completed | failed

`processing -> processing` is the re-entry of a redelivered job and
`completed | failed -> queued` starts a new job cycle from the producer.
"""

from blox_pipeline.jobs.errors import StatusTransitionError
from blox_pipeline.models.domain.pipeline_domain import JobStatus

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.IDLE: frozenset({JobStatus.QUEUED}),
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset(
        {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED}
    ),
    JobStatus.COMPLETED: frozenset({JobStatus.QUEUED}),
    JobStatus.FAILED: frozenset({JobStatus.QUEUED}),
}


def can_transition(current: JobStatus | str, target: JobStatus | str) -> bool:
    return JobStatus(target) in ALLOWED_TRANSITIONS[JobStatus(current)]


def ensure_transition(current: JobStatus | str, target: JobStatus | str) -> JobStatus:
    """Return the target status or raise StatusTransitionError."""
    if not can_transition(current, target):
        raise StatusTransitionError(str(current), str(target))
    return JobStatus(target)


def predecessors(target: JobStatus | str) -> list[str]:
    """States a compare-and-set write to `target` may start from."""
    target = JobStatus(target)
    return sorted(
        status.value for status, allowed in ALLOWED_TRANSITIONS.items() if target in allowed
    )
