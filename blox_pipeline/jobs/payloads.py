"""
Typed job payloads, one model per topic.

Payloads travel camelCase on the wire (documentId, userId, ...) and are
accessed snake_case in Python.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from blox_pipeline.jobs.errors import InvalidPayloadError
from blox_pipeline.models.domain.pipeline_domain import Topic

BillingEvent = Literal["renewal_success", "renewal_failed", "trial_ending", "cancelled", "upgraded"]


class JobPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class GeneratePayload(JobPayload):
    document_id: str
    type: str
    prompt: str
    user_id: str


class DocumentCheckPayload(JobPayload):
    """critique / ats-scan / seo-audit"""

    document_id: str
    user_id: str
    job_description: str | None = None


class DuplicatePayload(JobPayload):
    document_id: str
    source_document_id: str
    user_id: str
    job_description: str = Field(..., min_length=1)


class ImportUnifyPayload(JobPayload):
    run_id: str
    user_id: str
    providers: list[str] = Field(..., min_length=1)
    oauth_tokens: dict[str, str] | None = None
    persona: str = "Professional"
    manual_fallback: dict[str, dict[str, Any]] | None = None


class PublishPayload(JobPayload):
    document_id: str
    user_id: str
    subdomain: str
    custom_domain: str | None = None
    target_id: str


class BillingNotifyPayload(JobPayload):
    user_id: str
    event: BillingEvent
    tier: str | None = None
    days_remaining: int | None = None


PAYLOAD_MODELS: dict[Topic, type[JobPayload]] = {
    Topic.GENERATE: GeneratePayload,
    Topic.DUPLICATE: DuplicatePayload,
    Topic.CRITIQUE: DocumentCheckPayload,
    Topic.ATS_SCAN: DocumentCheckPayload,
    Topic.SEO_AUDIT: DocumentCheckPayload,
    Topic.IMPORT_UNIFY: ImportUnifyPayload,
    Topic.PUBLISH: PublishPayload,
    Topic.BILLING_NOTIFY: BillingNotifyPayload,
}


def parse_payload(topic: Topic | str, data: dict[str, Any]) -> JobPayload:
    """Validate a raw payload for its topic; invalid payloads are permanent failures."""
    model = PAYLOAD_MODELS[Topic(topic)]
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidPayloadError(
            f"Invalid {topic} payload: {e.error_count()} validation error(s)",
            operation="parse_payload",
        ) from e
