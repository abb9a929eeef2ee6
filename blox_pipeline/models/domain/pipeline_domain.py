"""
Domain models for the content pipeline.

Plain dataclasses mirroring the rows the producer and workers read and
write. Repositories build them from database rows; handlers never see raw
rows.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class DocumentType(StrEnum):
    PORTFOLIO = "PORTFOLIO"
    RESUME = "RESUME"
    COVER_LETTER = "COVER_LETTER"

    @classmethod
    def parse(cls, value: str) -> "DocumentType":
        """Unknown types are processed as resumes."""
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.RESUME


class JobStatus(StrEnum):
    IDLE = "idle"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.QUEUED, JobStatus.PROCESSING)


class Topic(StrEnum):
    GENERATE = "generate"
    DUPLICATE = "duplicate"
    CRITIQUE = "critique"
    ATS_SCAN = "ats-scan"
    SEO_AUDIT = "seo-audit"
    IMPORT_UNIFY = "import-unify"
    PUBLISH = "publish"
    BILLING_NOTIFY = "billing-notify"


class Visibility(StrEnum):
    PRIVATE = "PRIVATE"
    PUBLIC = "PUBLIC"


@dataclass(slots=True)
class Document:
    """A portfolio, resume or cover letter owned by a user."""

    id: str
    user_id: str
    type: DocumentType
    title: str
    content: dict[str, Any]
    health_score: int = 0
    job_status: JobStatus = JobStatus.IDLE
    job_id: str | None = None
    job_topic: str | None = None
    job_message: str | None = None
    seo_config: dict[str, Any] = field(default_factory=dict)
    visibility: Visibility = Visibility.PRIVATE
    published_url: str | None = None
    slug: str | None = None
    revision: int = 0


@dataclass(slots=True)
class DocumentVersion:
    """Immutable content snapshot."""

    id: str
    document_id: str
    label: str
    branch: str
    content: dict[str, Any]
    created_by: str
    source_job_id: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class ImportRun:
    """Tracks one multi-provider profile unification."""

    id: str
    user_id: str
    providers: list[str]
    status: JobStatus
    progress_pct: int = 0
    message: str | None = None
    queue_job_id: str | None = None
    draft_document_id: str | None = None
    merged_profile: dict[str, Any] | None = None
    confirmed_payload: dict[str, Any] | None = None
    failed_providers: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(slots=True)
class Notification:
    id: str
    user_id: str
    type: str
    title: str
    payload: dict[str, Any]
    read: bool = False
    source_job_id: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class PublishTarget:
    """Binding of a document to a public subdomain."""

    id: str
    document_id: str
    subdomain: str
    custom_domain: str | None = None
    is_active: bool = False
    published_at: datetime | None = None


@dataclass(slots=True)
class UserContact:
    """The slice of a user row the billing notifier needs."""

    id: str
    email: str
    full_name: str | None = None
