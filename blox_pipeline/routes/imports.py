"""
imports.py
----------
Purpose:
    Start a multi-provider profile import and poll its progress.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from blox_pipeline.auth.verify import current_user_id
from blox_pipeline.db.helpers import DatabaseError
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import PipelineError
from blox_pipeline.jobs.producer import job_producer
from blox_pipeline.models.api.pipeline_request import StartImportRequest
from blox_pipeline.models.api.pipeline_response import ImportRunStatusResponse, ImportStartedResponse
from blox_pipeline.repositories.import_run_repository import ImportRunRepository
from blox_pipeline.routes.errors import http_error

router = APIRouter(prefix="/imports", tags=["imports"])
logger = get_logger(__name__)


@router.post("", status_code=202, response_model=ImportStartedResponse)
async def start_import(request: StartImportRequest, user_id: str = Depends(current_user_id)):
    try:
        result = await job_producer.start_import(
            user_id,
            request.providers,
            oauth_tokens=request.oauth_tokens,
            persona=request.persona,
            manual_fallback=request.manual_fallback,
        )
    except PipelineError as e:
        raise http_error(e) from e
    except DatabaseError as e:
        logger.error("Database unavailable", error=str(e), operation=e.operation)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Try again later"
        ) from e

    return ImportStartedResponse(run_id=result["runId"], job_id=result["jobId"], status=result["status"])


@router.get("/{run_id}", response_model=ImportRunStatusResponse)
async def import_status(run_id: str, user_id: str = Depends(current_user_id)):
    run = await ImportRunRepository.load(run_id, user_id)
    if run is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import run not found")

    return ImportRunStatusResponse(
        run_id=run.id,
        status=run.status.value,
        progress_pct=run.progress_pct,
        message=run.message,
        failed_providers=run.failed_providers,
        merged_profile=run.merged_profile,
    )
