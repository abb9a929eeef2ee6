"""
Pipeline API request models.
Used by routes for input validation.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelRequest(BaseModel):
    """Accepts camelCase (jobDescription) and snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateRequest(CamelRequest):
    """Request for AI content generation."""

    prompt: str = Field(..., min_length=1, max_length=4000, description="What to generate")


class DocumentCheckRequest(CamelRequest):
    """Request body for critique, ATS scan and SEO audit."""

    job_description: str | None = Field(
        default=None, max_length=20000, description="Job description to match keywords against"
    )


class DuplicateRequest(CamelRequest):
    """Request for a copy tailored to a job."""

    job_description: str | None = Field(default=None, max_length=20000)


class PublishRequest(CamelRequest):
    """Request for publishing a document on a subdomain."""

    subdomain: str = Field(..., min_length=1, max_length=63)
    custom_domain: str | None = Field(default=None, max_length=253)


class StartImportRequest(CamelRequest):
    """Request for a multi-provider profile import."""

    providers: list[str] = Field(..., min_length=1, description="Providers in merge order")
    oauth_tokens: dict[str, str] | None = Field(default=None)
    persona: str = Field(default="Professional", max_length=40)
    manual_fallback: dict[str, dict[str, Any]] | None = Field(
        default=None, description="Profile data for providers without an API token"
    )

