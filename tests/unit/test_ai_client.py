import json

import httpx
import pytest
import respx

from blox_pipeline.jobs.errors import TransientExternalError
from blox_pipeline.services.ai_client import AIContentClient

AI_URL = "http://ai.test"


@pytest.fixture
def client():
    return AIContentClient(base_url=AI_URL)


@pytest.mark.asyncio
async def test_generate_returns_content(client):
    with respx.mock(base_url=AI_URL) as respx_mock:
        route = respx_mock.post("/v1/ai/generate").mock(
            return_value=httpx.Response(200, json={"content": "Line A\nLine B"})
        )

        text = await client.generate("Generate a RESUME for: engineer", asset_type="RESUME", timeout=5)

    assert text == "Line A\nLine B"
    body = json.loads(route.calls.last.request.content)
    assert body == {
        "assetType": "RESUME",
        "prompt": "Generate a RESUME for: engineer",
        "context": {},
        "preferredRoute": "generation_critique",
    }


@pytest.mark.asyncio
async def test_server_error_is_transient(client):
    with respx.mock(base_url=AI_URL) as respx_mock:
        respx_mock.post("/v1/ai/generate").mock(return_value=httpx.Response(500, json={"error": "boom"}))

        with pytest.raises(TransientExternalError) as exc:
            await client.generate("prompt")

    assert exc.value.status_code == 500
    assert exc.value.service == "ai"
    assert exc.value.recoverable is True


@pytest.mark.asyncio
async def test_timeout_is_transient(client):
    with respx.mock(base_url=AI_URL) as respx_mock:
        respx_mock.post("/v1/ai/generate").mock(side_effect=httpx.ConnectTimeout("timed out"))

        with pytest.raises(TransientExternalError, match="timed out"):
            await client.generate("prompt", timeout=0.1)


@pytest.mark.asyncio
async def test_empty_content_is_transient(client):
    with respx.mock(base_url=AI_URL) as respx_mock:
        respx_mock.post("/v1/ai/generate").mock(return_value=httpx.Response(200, json={"content": "  "}))

        with pytest.raises(TransientExternalError, match="no content"):
            await client.generate("prompt")
