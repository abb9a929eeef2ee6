import pytest

from blox_pipeline.jobs.handlers.duplicate import DuplicateHandler
from blox_pipeline.models.domain.pipeline_domain import JobStatus

CONTENT = {"sections": [{"id": "section-0", "type": "summary", "content": "Python engineer"}]}


def _job(queued_job, document):
    return queued_job(
        document,
        "duplicate",
        {
            "documentId": document.id,
            "sourceDocumentId": "source-doc",
            "userId": document.user_id,
            "jobDescription": "Senior Python engineer with Kafka",
        },
    )


@pytest.mark.asyncio
async def test_tailoring_falls_back_to_missing_keywords(
    make_ai, make_document, queued_job, documents, versions, notifications
):
    document = make_document(content=dict(CONTENT))
    handler = DuplicateHandler(
        ai=make_ai(available=False), documents=documents, versions=versions, notifications=notifications
    )

    result = await handler(_job(queued_job, document))

    tailoring = documents.rows[document.id].content["tailoring"]
    assert result["generatedBy"] == "fallback"
    assert tailoring["sourceDocumentId"] == "source-doc"
    assert tailoring["missingKeywords"] == ["senior", "with", "kafka"]
    assert tailoring["suggestions"][0] == 'Mention "senior" where it reflects your experience'
    assert tailoring["matchScore"] == 40
    assert documents.rows[document.id].content["sections"] == CONTENT["sections"]
    assert documents.rows[document.id].job_status == JobStatus.COMPLETED
    assert notifications.of_type("asset_tailored")[0].title == "Your tailored copy is ready!"


@pytest.mark.asyncio
async def test_tailoring_uses_ai_suggestions(make_ai, make_document, queued_job, documents, versions, notifications):
    document = make_document(content=dict(CONTENT))
    ai = make_ai(text="- Mention Kafka streaming work\n\n* Lead with seniority")
    handler = DuplicateHandler(ai=ai, documents=documents, versions=versions, notifications=notifications)

    result = await handler(_job(queued_job, document))

    tailoring = documents.rows[document.id].content["tailoring"]
    assert result["generatedBy"] == "ai"
    assert tailoring["suggestions"] == ["Mention Kafka streaming work", "Lead with seniority"]
    assert ai.calls[0]["timeout"] == 12
