"""
Health endpoints: liveness, and readiness of Postgres, Redis and the job queue.
"""

import time

from fastapi import APIRouter

from blox_pipeline.config import settings
from blox_pipeline.db.pool import db_health_check
from blox_pipeline.jobs.queue import job_queue
from blox_pipeline.models.domain.pipeline_domain import Topic
from blox_pipeline.services.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "blox-pipeline"}


@router.get("/health")
async def health():
    """Readiness with dependency checks and per-topic queue depth."""
    checks = {}
    overall_ok = True

    # 1) Redis
    t0 = time.time()
    try:
        redis_ok = await fast_redis.ping()
        checks["redis"] = {"ok": bool(redis_ok), "latency_ms": round((time.time() - t0) * 1000, 1)}
        overall_ok = overall_ok and bool(redis_ok)
    except Exception as e:
        checks["redis"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    # 2) Database pool
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        checks["database"] = {"ok": is_healthy, "latency_ms": round((time.time() - t0) * 1000, 1)}
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")
        overall_ok = overall_ok and is_healthy
    except Exception as e:
        checks["database"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    # 3) Queue depth, only meaningful when Redis answered
    if checks["redis"]["ok"]:
        try:
            checks["queue"] = {"ok": True, "topics": {t.value: await job_queue.stats(t) for t in Topic}}
        except Exception as e:
            checks["queue"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
            overall_ok = False

    return {
        "overall_ok": overall_ok,
        "checks": checks,
        "environment": settings.environment,
        "timestamp": time.time(),
    }
