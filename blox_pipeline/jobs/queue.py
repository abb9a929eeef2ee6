"""
Redis-backed job queue with at-least-once delivery.

Per topic the queue keeps:
    {prefix}:{topic}:pending     list, producers LPUSH, workers take from the right
    {prefix}:{topic}:processing  list of reserved jobs
    {prefix}:{topic}:leases      zset raw job -> lease deadline (epoch seconds)
    {prefix}:{topic}:attempts    hash job id -> delivery count
    {prefix}:{topic}:dead        list of jobs that will not be retried

A reserved job stays in `processing` until it is acked. If the worker dies
the lease expires and `requeue_expired` puts the job back on `pending`, so a
handler can see the same job more than once. Every redelivery carries a fresh
`delivery` token, so the raw entry names one delivery and a late ack or fail
from an expired delivery finds nothing to remove.

Entries that cannot be decoded are moved to `dead` as soon as they are
reserved.
"""

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import (
    bind_job_context,
    clear_job_context,
    get_logger,
    log_job_outcome,
)
from blox_pipeline.jobs.errors import PipelineError, is_recoverable
from blox_pipeline.models.domain.pipeline_domain import Topic
from blox_pipeline.services.redis_client import fast_redis

logger = get_logger(__name__)


class QueueError(PipelineError):
    """Raised when the queue transport cannot accept or hand out a job."""


@dataclass(slots=True)
class JobEnvelope:
    """One delivery of a job."""

    id: str
    topic: str
    payload: dict[str, Any]
    enqueued_at: str
    attempt: int = 0
    raw: str = ""

    @classmethod
    def decode(cls, raw: str) -> "JobEnvelope":
        data = json.loads(raw)
        return cls(
            id=data["id"],
            topic=data["topic"],
            payload=data.get("payload") or {},
            enqueued_at=data.get("enqueuedAt", ""),
            raw=raw,
        )

    @staticmethod
    def encode(job_id: str, topic: str, payload: dict[str, Any]) -> str:
        return json.dumps(
            {
                "id": job_id,
                "topic": topic,
                "payload": payload,
                "enqueuedAt": datetime.now(UTC).isoformat(),
            },
            separators=(",", ":"),
        )


def redelivery(raw: str) -> str:
    """Re-stamp a raw job with a new delivery token before it goes back to pending."""
    data = json.loads(raw)
    data["delivery"] = uuid4().hex
    return json.dumps(data, separators=(",", ":"))


JobHandler = Callable[[JobEnvelope], Awaitable[Any]]


class JobQueue:
    """Topic-partitioned queue over Redis lists."""

    def __init__(
        self,
        client=None,
        *,
        prefix: str | None = None,
        visibility_timeout: float | None = None,
        max_attempts: int | None = None,
    ):
        self._client = client
        self.prefix = prefix or settings.QUEUE_PREFIX
        self.visibility_timeout = visibility_timeout or settings.QUEUE_VISIBILITY_TIMEOUT_SECONDS
        self.max_attempts = max_attempts or settings.QUEUE_MAX_ATTEMPTS

    async def _redis(self):
        if self._client is None:
            return await fast_redis.connection()
        return self._client

    def key(self, topic: Topic | str, part: str) -> str:
        return f"{self.prefix}:{Topic(topic).value}:{part}"

    async def enqueue(
        self, topic: Topic | str, payload: dict[str, Any], job_id: str | None = None
    ) -> str:
        """Append a job to the topic and return its id."""
        topic = Topic(topic)
        job_id = job_id or str(uuid4())
        raw = JobEnvelope.encode(job_id, topic.value, payload)

        try:
            client = await self._redis()
            await client.lpush(self.key(topic, "pending"), raw)
        except Exception as e:
            logger.error("Failed to enqueue job", topic=topic.value, job_id=job_id, error=str(e))
            raise QueueError(f"Could not enqueue {topic.value} job: {e}", operation="enqueue") from e

        logger.info("Job enqueued", topic=topic.value, job_id=job_id)
        return job_id

    async def reserve(self, topic: Topic | str, timeout: float | None = None) -> JobEnvelope | None:
        """
        Move the oldest pending job to processing and lease it.

        Returns None on timeout, and also when the entry could not be decoded
        (it is dead-lettered instead).
        """
        client = await self._redis()
        wait = settings.QUEUE_POLL_TIMEOUT_SECONDS if timeout is None else timeout

        raw = await client.blmove(
            self.key(topic, "pending"), self.key(topic, "processing"), wait, "RIGHT", "LEFT"
        )
        if raw is None:
            return None
        await client.zadd(self.key(topic, "leases"), {raw: time.time() + self.visibility_timeout})

        try:
            job = JobEnvelope.decode(raw)
        except (ValueError, KeyError, TypeError) as e:
            await self._bury(topic, raw, e)
            return None

        job.attempt = int(await client.hincrby(self.key(topic, "attempts"), job.id, 1))
        return job

    async def _bury(self, topic: Topic | str, raw: str, error: BaseException) -> None:
        client = await self._redis()
        dead = json.dumps(
            {
                "raw": raw,
                "error": str(error),
                "errorType": type(error).__name__,
                "failedAt": datetime.now(UTC).isoformat(),
            },
            separators=(",", ":"),
        )
        async with client.pipeline(transaction=True) as pipe:
            pipe.lrem(self.key(topic, "processing"), 1, raw)
            pipe.zrem(self.key(topic, "leases"), raw)
            pipe.lpush(self.key(topic, "dead"), dead)
            await pipe.execute()
        logger.error("Undecodable job dead-lettered", topic=str(topic), error=str(error))

    async def _release(self, job: JobEnvelope) -> bool:
        # lrem decides ownership; an expired delivery was already moved by the reaper
        client = await self._redis()
        if await client.lrem(self.key(job.topic, "processing"), 1, job.raw):
            return True
        logger.warning("Ignoring release of expired delivery", topic=job.topic, job_id=job.id)
        return False

    async def ack(self, job: JobEnvelope) -> None:
        """Remove a finished job for good."""
        if not await self._release(job):
            return
        client = await self._redis()
        async with client.pipeline(transaction=True) as pipe:
            pipe.zrem(self.key(job.topic, "leases"), job.raw)
            pipe.hdel(self.key(job.topic, "attempts"), job.id)
            await pipe.execute()

    async def fail(self, job: JobEnvelope, error: BaseException) -> bool:
        """
        Release a job whose handler raised.

        Returns True when the job went back to pending, False when it was
        dead-lettered or the delivery had already expired.
        """
        if not await self._release(job):
            return False
        retry = is_recoverable(error) and job.attempt < self.max_attempts
        client = await self._redis()

        async with client.pipeline(transaction=True) as pipe:
            pipe.zrem(self.key(job.topic, "leases"), job.raw)
            if retry:
                pipe.lpush(self.key(job.topic, "pending"), redelivery(job.raw))
            else:
                dead = json.dumps(
                    {
                        "job": json.loads(job.raw),
                        "error": str(error),
                        "errorType": type(error).__name__,
                        "attempts": job.attempt,
                        "failedAt": datetime.now(UTC).isoformat(),
                    },
                    separators=(",", ":"),
                )
                pipe.lpush(self.key(job.topic, "dead"), dead)
                pipe.hdel(self.key(job.topic, "attempts"), job.id)
            await pipe.execute()

        if retry:
            logger.warning("Job requeued after failure", attempt=job.attempt, error=str(error))
        else:
            logger.error("Job dead-lettered", attempt=job.attempt, error=str(error))
        return retry

    async def requeue_expired(self, topic: Topic | str, now: float | None = None) -> int:
        """
        Return jobs whose lease expired (crashed worker) to pending.

        A processing entry with no lease at all (the worker died between the
        move and the lease write) is given one, so a later pass reaps it.
        """
        client = await self._redis()
        now = time.time() if now is None else now
        leases = self.key(topic, "leases")
        processing = self.key(topic, "processing")

        for raw in await client.lrange(processing, 0, -1):
            await client.zadd(leases, {raw: now + self.visibility_timeout}, nx=True)

        requeued = 0
        for raw in await client.zrangebyscore(leases, "-inf", now):
            # zrem decides which reaper owns the job
            if not await client.zrem(leases, raw):
                continue
            try:
                fresh = redelivery(raw)
            except (ValueError, TypeError) as e:
                await self._bury(topic, raw, e)
                continue
            if not await client.lrem(processing, 1, raw):
                continue
            await client.lpush(self.key(topic, "pending"), fresh)
            requeued += 1

        if requeued:
            logger.warning("Requeued jobs with expired leases", topic=str(topic), count=requeued)
        return requeued

    async def stats(self, topic: Topic | str) -> dict[str, int]:
        client = await self._redis()
        return {
            "pending": int(await client.llen(self.key(topic, "pending"))),
            "processing": int(await client.llen(self.key(topic, "processing"))),
            "dead": int(await client.llen(self.key(topic, "dead"))),
        }

    async def process_next(
        self, topic: Topic | str, handler: JobHandler, timeout: float | None = None
    ) -> bool:
        """
        Deliver at most one job to the handler.

        Returns False when nothing deliverable was pending. Handler errors are logged and
        routed through fail(); they do not escape.
        """
        job = await self.reserve(topic, timeout=timeout)
        if job is None:
            return False

        bind_job_context(job.topic, job.id, job.attempt)
        start = time.time()
        try:
            await handler(job)
        except Exception as e:
            duration_ms = round((time.time() - start) * 1000, 2)
            log_job_outcome(job.topic, job.id, False, duration_ms, error=str(e))
            await self.fail(job, e)
        else:
            await self.ack(job)
            log_job_outcome(job.topic, job.id, True, round((time.time() - start) * 1000, 2))
        finally:
            clear_job_context()
        return True

    async def consume(
        self,
        topic: Topic | str,
        handler: JobHandler,
        *,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Run the consumer loop for one topic until stop_event is set."""
        topic = Topic(topic)
        stop_event = stop_event or asyncio.Event()
        last_reap = 0.0

        logger.info("Consumer started", topic=topic.value)
        while not stop_event.is_set():
            try:
                if time.time() - last_reap >= settings.QUEUE_REAPER_INTERVAL_SECONDS:
                    await self.requeue_expired(topic)
                    last_reap = time.time()
                await self.process_next(topic, handler)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Consumer loop error", topic=topic.value, error=str(e), error_type=type(e).__name__
                )
                await asyncio.sleep(1)
        logger.info("Consumer stopped", topic=topic.value)


job_queue = JobQueue()
