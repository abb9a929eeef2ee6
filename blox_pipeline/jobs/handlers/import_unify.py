"""
import-unify: fetch each requested provider profile, merge them and store
the merged preview on the import run.

A provider that fails is skipped and listed in failed_providers; it never
fails the run. Turning the preview into a document is a separate
confirmation step.
"""

from typing import Any

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import NotFoundError, TransientExternalError
from blox_pipeline.jobs.handlers.base import JobHandlerBase
from blox_pipeline.jobs.payloads import ImportUnifyPayload
from blox_pipeline.jobs.queue import JobEnvelope
from blox_pipeline.models.domain.pipeline_domain import JobStatus, Topic
from blox_pipeline.models.domain.profile_domain import MergedProfile, ProviderProfile
from blox_pipeline.repositories.import_run_repository import ImportRunRepository
from blox_pipeline.repositories.user_repository import UserRepository
from blox_pipeline.scoring.profile_merge import (
    about_prompt,
    autofill_score,
    fallback_about,
    is_usable_about,
    merge_profiles,
)
from blox_pipeline.services.profile_providers import (
    API_PROVIDERS,
    profile_from_manual,
    profile_provider_client,
)

logger = get_logger(__name__)

PROGRESS_STARTED = 10
PROGRESS_MERGING = 45
PROGRESS_WRITING_ABOUT = 75
PROGRESS_MERGED = 95
PROGRESS_DONE = 100


class ImportUnifyHandler(JobHandlerBase):
    topic = Topic.IMPORT_UNIFY

    def __init__(self, *, runs=ImportRunRepository, users=UserRepository, providers=None, **kwargs):
        super().__init__(**kwargs)
        self.runs = runs
        self.users = users
        self.providers = providers or profile_provider_client

    async def resolve_tokens(self, payload: ImportUnifyPayload) -> dict[str, str]:
        """Tokens from the payload take precedence over stored OAuth connections."""
        tokens = dict(payload.oauth_tokens or {})
        missing = [p for p in payload.providers if p in API_PROVIDERS and not tokens.get(p)]
        if missing:
            stored = await self.users.oauth_tokens(payload.user_id, missing)
            tokens.update({provider: token for provider, token in stored.items() if token})
        return tokens

    async def collect(self, payload: ImportUnifyPayload) -> tuple[list[ProviderProfile], list[str]]:
        tokens = await self.resolve_tokens(payload)
        manual = payload.manual_fallback or {}
        profiles: list[ProviderProfile] = []
        failed: list[str] = []

        for provider in payload.providers:
            if provider in API_PROVIDERS and tokens.get(provider):
                try:
                    profiles.append(await self.providers.fetch(provider, tokens[provider]))
                except TransientExternalError as e:
                    logger.warning("Provider import failed", provider=provider, error=str(e))
                    failed.append(provider)
            elif provider in manual:
                profiles.append(profile_from_manual(provider, manual[provider]))
            else:
                logger.info("No token or manual data for provider, skipping", provider=provider)

        return profiles, failed

    async def write_about(self, merged: MergedProfile, profiles: list[ProviderProfile]) -> str:
        """AI about text in the persona's tone; the template when the AI is down or too brief."""
        try:
            text = await self.ai.generate(
                about_prompt(merged, profiles),
                asset_type="PORTFOLIO",
                timeout=settings.AI_ABOUT_TIMEOUT_SECONDS,
            )
        except TransientExternalError as e:
            logger.warning("AI unavailable, using about template", error=str(e))
            return fallback_about(merged)

        text = text.strip()
        if is_usable_about(text):
            return text
        logger.info("AI about text too short, using template", words=len(text.split()))
        return fallback_about(merged)

    async def __call__(self, job: JobEnvelope) -> dict[str, Any]:
        payload = self.parse(job)
        run = await self.runs.load(payload.run_id, payload.user_id)
        if run is None:
            raise NotFoundError(f"Import run {payload.run_id} not found", operation="import_unify")

        if run.queue_job_id and run.queue_job_id != job.id:
            logger.info("Skipping superseded import job", run_id=run.id, active_job_id=run.queue_job_id)
            return {"runId": run.id, "skipped": True, "reason": "superseded"}
        if run.status.is_terminal:
            logger.info("Skipping import that already finished", run_id=run.id, status=run.status.value)
            return {"runId": run.id, "skipped": True, "reason": run.status.value}

        await self.runs.update(
            run.id, status=JobStatus.PROCESSING, progress_pct=PROGRESS_STARTED, message="Import started"
        )

        try:
            profiles, failed = await self.collect(payload)
            await self.runs.update(run.id, progress_pct=PROGRESS_MERGING, message="Merging imported profiles")

            merged = merge_profiles(profiles, payload.persona)
            await self.runs.update(
                run.id, progress_pct=PROGRESS_WRITING_ABOUT, message="Writing about section"
            )
            merged.about = await self.write_about(merged, profiles)
            merged.autofill_score = autofill_score(merged)

            message = f"Partial import: {', '.join(failed)}" if failed else "Ready for review"
            await self.runs.update(
                run.id,
                progress_pct=PROGRESS_MERGED,
                message=message,
                merged_profile=merged.to_dict(),
                failed_providers=failed,
            )

            await self.notifications.create(
                user_id=payload.user_id,
                type="import_completed",
                title="Import completed with partial data" if failed else "Import completed",
                payload={
                    "runId": run.id,
                    "skills": len(merged.skills),
                    "projects": len(merged.projects),
                    "failedProviders": failed,
                },
                source_job_id=job.id,
            )
            await self.runs.update(
                run.id, status=JobStatus.COMPLETED, progress_pct=PROGRESS_DONE, message=message
            )
        except Exception as e:
            await self._record_failure(job, run.id, e)
            raise

        logger.info(
            "Import merged",
            run_id=run.id,
            sources=merged.sources,
            failed_providers=failed,
            autofill_score=merged.autofill_score,
        )
        return {
            "runId": run.id,
            "status": JobStatus.COMPLETED.value,
            "skills": len(merged.skills),
            "projects": len(merged.projects),
            "failedProviders": failed,
        }

    async def _record_failure(self, job: JobEnvelope, run_id: str, error: Exception) -> None:
        try:
            if self.is_final_attempt(job, error):
                await self.runs.update(
                    run_id, status=JobStatus.FAILED, progress_pct=PROGRESS_DONE, message=str(error)
                )
            else:
                await self.runs.update(run_id, message=f"Retrying after error: {error}")
        except Exception as status_error:
            logger.error("Could not record import failure", run_id=run_id, error=str(status_error))
        logger.error("Import failed", run_id=run_id, error=str(error), error_type=type(error).__name__)
