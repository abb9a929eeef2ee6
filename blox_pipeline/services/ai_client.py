"""
Client for the AI content generator service.

Every failure mode (transport error, timeout, non-2xx, malformed or empty
output) surfaces as TransientExternalError so callers can take their
deterministic fallback path.
"""

from typing import Any

import httpx

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import TransientExternalError

logger = get_logger(__name__)

GENERATE_PATH = "/v1/ai/generate"
DEFAULT_ROUTE = "generation_critique"


class AIContentClient:
    """Thin async wrapper over POST /v1/ai/generate."""

    def __init__(self, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = (base_url or settings.AI_SERVICE_URL).rstrip("/")
        self._transport = transport

    async def generate(
        self,
        prompt: str,
        *,
        asset_type: str = "RESUME",
        timeout: float | None = None,
        context: dict[str, Any] | None = None,
        route: str = DEFAULT_ROUTE,
    ) -> str:
        """
        Return the generated text.

        Raises:
            TransientExternalError: on any failure, including timeouts
        """
        timeout = timeout or settings.AI_GENERATE_TIMEOUT_SECONDS
        body = {
            "assetType": asset_type,
            "prompt": prompt,
            "context": context or {},
            "preferredRoute": route,
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=httpx.Timeout(timeout), transport=self._transport
            ) as client:
                response = await client.post(GENERATE_PATH, json=body)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("AI service timed out", timeout_seconds=timeout)
            raise TransientExternalError("AI service timed out", service="ai") from e
        except httpx.HTTPStatusError as e:
            logger.warning("AI service returned error", status_code=e.response.status_code)
            raise TransientExternalError(
                f"AI service returned {e.response.status_code}",
                service="ai",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("AI service request failed", error=str(e), error_type=type(e).__name__)
            raise TransientExternalError(f"AI service request failed: {e}", service="ai") from e

        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise TransientExternalError("AI service returned no content", service="ai")
        return content


ai_client = AIContentClient()
