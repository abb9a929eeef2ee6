"""
Queue worker runner.

Reads the topic to consume from CLI args or the WORKER_TOPIC environment
variable ("all" runs one consumer per topic in this process) and hands
each delivered job to the topic's handler.
"""

import asyncio
import os
import sys

from blox_pipeline.config import settings
from blox_pipeline.db.pool import db_pool
from blox_pipeline.infrastructure.observability.logging import get_logger, setup_logging
from blox_pipeline.jobs.handlers.ats_scan import AtsScanHandler
from blox_pipeline.jobs.handlers.billing_notify import BillingNotifyHandler
from blox_pipeline.jobs.handlers.critique import CritiqueHandler
from blox_pipeline.jobs.handlers.duplicate import DuplicateHandler
from blox_pipeline.jobs.handlers.generate import GenerateHandler
from blox_pipeline.jobs.handlers.import_unify import ImportUnifyHandler
from blox_pipeline.jobs.handlers.publish import PublishHandler
from blox_pipeline.jobs.handlers.seo_audit import SeoAuditHandler
from blox_pipeline.jobs.queue import JobHandler, job_queue
from blox_pipeline.models.domain.pipeline_domain import Topic
from blox_pipeline.services.redis_client import fast_redis

logger = get_logger(__name__)

ALL_TOPICS = "all"

HANDLER_REGISTRY: dict[str, JobHandler] = {
    Topic.GENERATE.value: GenerateHandler(),
    Topic.DUPLICATE.value: DuplicateHandler(),
    Topic.CRITIQUE.value: CritiqueHandler(),
    Topic.ATS_SCAN.value: AtsScanHandler(),
    Topic.SEO_AUDIT.value: SeoAuditHandler(),
    Topic.IMPORT_UNIFY.value: ImportUnifyHandler(),
    Topic.PUBLISH.value: PublishHandler(),
    Topic.BILLING_NOTIFY.value: BillingNotifyHandler(),
}


def _resolve_topic() -> str:
    """Pick the target topic from CLI args or WORKER_TOPIC env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_TOPIC", ALL_TOPICS).strip().lower()


def resolve_topics(name: str) -> list[str]:
    if name == ALL_TOPICS:
        return list(HANDLER_REGISTRY)
    if name not in HANDLER_REGISTRY:
        raise ValueError(
            f"Unknown worker topic '{name}'. "
            f"Available topics: {', '.join(sorted(HANDLER_REGISTRY.keys()))}, {ALL_TOPICS}"
        )
    return [name]


async def run_worker(topic: str | None = None, stop_event: asyncio.Event | None = None) -> None:
    """Consume the requested topic(s) until stop_event is set."""
    name = (topic or _resolve_topic()).strip().lower()
    topics = resolve_topics(name)
    stop_event = stop_event or asyncio.Event()

    logger.info("Starting queue worker", topics=topics)
    await asyncio.gather(
        *(job_queue.consume(t, HANDLER_REGISTRY[t], stop_event=stop_event) for t in topics)
    )


async def _serve(topic: str) -> None:
    await db_pool.initialize()
    await fast_redis.initialize()
    try:
        await run_worker(topic)
    finally:
        await fast_redis.close()
        await db_pool.close()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(settings.LOG_LEVEL)
    asyncio.run(_serve(_resolve_topic()))


if __name__ == "__main__":
    main()
