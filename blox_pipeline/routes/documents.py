"""
documents.py
------------
Purpose:
    Job endpoints for a single document: queue generate, critique, ATS scan,
    SEO audit, tailored copy and publish jobs, and poll the job status.

    All endpoints act on documents owned by the authenticated user; a
    document owned by someone else is reported as not found.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from blox_pipeline.auth.verify import current_user_id
from blox_pipeline.db.helpers import DatabaseError
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import PipelineError
from blox_pipeline.jobs.producer import job_producer
from blox_pipeline.models.api.pipeline_request import (
    DocumentCheckRequest,
    DuplicateRequest,
    GenerateRequest,
    PublishRequest,
)
from blox_pipeline.models.api.pipeline_response import (
    DocumentStatusResponse,
    DocumentSummaryResponse,
    JobAcceptedResponse,
    PublishAcceptedResponse,
    TailoredCopyResponse,
)
from blox_pipeline.models.domain.pipeline_domain import Topic
from blox_pipeline.repositories.document_repository import DocumentRepository
from blox_pipeline.routes.errors import http_error

router = APIRouter(prefix="/documents", tags=["documents"])
logger = get_logger(__name__)


def _unavailable(e: DatabaseError) -> HTTPException:
    logger.error("Database unavailable", error=str(e), operation=e.operation)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Try again later")


@router.post("/{document_id}/generate", status_code=202, response_model=JobAcceptedResponse)
async def generate(
    document_id: str, request: GenerateRequest, user_id: str = Depends(current_user_id)
):
    try:
        job = await job_producer.request_generation(document_id, user_id, request.prompt)
    except PipelineError as e:
        raise http_error(e) from e
    except DatabaseError as e:
        raise _unavailable(e) from e
    return JobAcceptedResponse(job_id=job["jobId"], status=job["status"])


async def _queue_check(
    topic: Topic, document_id: str, request: DocumentCheckRequest | None, user_id: str
) -> JobAcceptedResponse:
    job_description = request.job_description if request else None
    try:
        job = await job_producer.request_document_check(topic, document_id, user_id, job_description)
    except PipelineError as e:
        raise http_error(e) from e
    except DatabaseError as e:
        raise _unavailable(e) from e
    return JobAcceptedResponse(job_id=job["jobId"], status=job["status"])


@router.post("/{document_id}/critique", status_code=202, response_model=JobAcceptedResponse)
async def critique(
    document_id: str,
    request: DocumentCheckRequest | None = None,
    user_id: str = Depends(current_user_id),
):
    return await _queue_check(Topic.CRITIQUE, document_id, request, user_id)


@router.post("/{document_id}/ats-scan", status_code=202, response_model=JobAcceptedResponse)
async def ats_scan(
    document_id: str,
    request: DocumentCheckRequest | None = None,
    user_id: str = Depends(current_user_id),
):
    return await _queue_check(Topic.ATS_SCAN, document_id, request, user_id)


@router.post("/{document_id}/seo-audit", status_code=202, response_model=JobAcceptedResponse)
async def seo_audit(
    document_id: str,
    request: DocumentCheckRequest | None = None,
    user_id: str = Depends(current_user_id),
):
    return await _queue_check(Topic.SEO_AUDIT, document_id, request, user_id)


@router.post("/{document_id}/duplicate", status_code=201, response_model=TailoredCopyResponse)
async def duplicate(
    document_id: str,
    request: DuplicateRequest | None = None,
    user_id: str = Depends(current_user_id),
):
    job_description = request.job_description if request else None
    try:
        result = await job_producer.request_tailored_copy(document_id, user_id, job_description)
    except PipelineError as e:
        raise http_error(e) from e
    except DatabaseError as e:
        raise _unavailable(e) from e

    copy = result["document"]
    job = result["job"]
    return TailoredCopyResponse(
        document=DocumentSummaryResponse(
            id=copy.id,
            type=copy.type.value,
            title=copy.title,
            health_score=copy.health_score,
            visibility=copy.visibility.value,
        ),
        job=JobAcceptedResponse(job_id=job["jobId"], status=job["status"]) if job else None,
    )


@router.post("/{document_id}/publish", status_code=202, response_model=PublishAcceptedResponse)
async def publish(
    document_id: str, request: PublishRequest, user_id: str = Depends(current_user_id)
):
    try:
        result = await job_producer.request_publish(
            document_id, user_id, request.subdomain, request.custom_domain
        )
    except PipelineError as e:
        raise http_error(e) from e
    except DatabaseError as e:
        raise _unavailable(e) from e

    return PublishAcceptedResponse(
        job_id=result["jobId"],
        status=result["status"],
        document_id=result["documentId"],
        subdomain=result["subdomain"],
        custom_domain=result["customDomain"],
        published_url=result["publishedUrl"],
    )


@router.get("/{document_id}/status", response_model=DocumentStatusResponse)
async def job_status(document_id: str, user_id: str = Depends(current_user_id)):
    try:
        document = await DocumentRepository.load(document_id, user_id)
    except DatabaseError as e:
        raise _unavailable(e) from e
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")

    return DocumentStatusResponse(
        document_id=document.id,
        status=document.job_status.value,
        job_id=document.job_id,
        topic=document.job_topic,
        message=document.job_message,
        health_score=document.health_score,
    )
