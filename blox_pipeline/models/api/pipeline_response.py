"""
Pipeline API response models.
Used by routes for output formatting.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobAcceptedResponse(CamelModel):
    """Returned when a job was queued."""

    job_id: str
    status: str = Field(..., description="Always 'queued' for new jobs")


class DocumentStatusResponse(CamelModel):
    """Polled by clients while a document job is active."""

    document_id: str
    status: str
    job_id: str | None = None
    topic: str | None = None
    message: str | None = None
    health_score: int


class DocumentSummaryResponse(CamelModel):
    id: str
    type: str
    title: str
    health_score: int
    visibility: str


class TailoredCopyResponse(CamelModel):
    document: DocumentSummaryResponse
    job: JobAcceptedResponse | None = None


class PublishAcceptedResponse(CamelModel):
    job_id: str
    status: str
    document_id: str
    subdomain: str
    custom_domain: str | None = None
    published_url: str


class ImportStartedResponse(CamelModel):
    run_id: str
    job_id: str
    status: str


class ImportRunStatusResponse(CamelModel):
    run_id: str
    status: str
    progress_pct: int
    message: str | None = None
    failed_providers: list[str] = Field(default_factory=list)
    merged_profile: dict[str, Any] | None = None


class NotificationResponse(CamelModel):
    id: str
    type: str
    title: str
    payload: dict[str, Any]
    read: bool
    created_at: datetime | None = None


class NotificationListResponse(CamelModel):
    notifications: list[NotificationResponse]
    unread: int
