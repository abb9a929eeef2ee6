import pytest

from blox_pipeline.jobs.handlers.critique import CritiqueHandler
from blox_pipeline.models.domain.pipeline_domain import JobStatus
from blox_pipeline.scoring.common import round_half_up
from blox_pipeline.scoring.critique import IMPROVEMENT_HINTS, score_content


def _long_section(index):
    return {"id": f"section-{index}", "type": "experience", "content": "Built data pipelines " * 5}


def test_empty_document_scores():
    scores = score_content({"sections": []})

    assert scores.completeness == 0
    assert scores.readability == 50
    assert scores.ats == 55
    assert scores.seo == 45
    # (0 + 50 + 55 + 45) / 4 = 37.5
    assert scores.overall == 38
    assert scores.improvements == list(IMPROVEMENT_HINTS.values())


def test_completeness_counts_sections_over_fifty_chars():
    content = {
        "sections": [
            _long_section(0),
            _long_section(1),
            {"id": "section-2", "type": "skills", "content": "SQL"},
        ]
    }

    scores = score_content(content)

    assert scores.completeness == 67
    assert scores.ats == round_half_up(55 + 67 * 0.4)


def test_scores_are_capped():
    content = {"sections": [_long_section(i) for i in range(400)]}

    scores = score_content(content)

    assert scores.completeness == 100
    assert scores.readability == 95
    assert scores.ats == 95
    assert scores.seo == 90
    assert scores.improvements == []


def test_stored_results_do_not_change_the_score():
    content = {"sections": [_long_section(0)]}
    first = score_content(content)

    content["critique"] = first.to_content("Tighten the summary " * 50, "2026-01-01T00:00:00+00:00")
    content["atsResult"] = {"score": 80, "checks": []}

    assert score_content(content) == first


def test_round_half_up():
    assert round_half_up(37.5) == 38
    assert round_half_up(38.5) == 39
    assert round_half_up(38.49) == 38


@pytest.mark.asyncio
async def test_critique_completes_without_ai(
    make_ai, make_document, queued_job, documents, versions, notifications
):
    document = make_document()
    handler = CritiqueHandler(
        ai=make_ai(available=False), documents=documents, versions=versions, notifications=notifications
    )
    job = queued_job(document, "critique", {"documentId": document.id, "userId": document.user_id})

    result = await handler(job)

    stored = documents.rows[document.id]
    assert result == {"documentId": document.id, "score": 38}
    assert stored.job_status == JobStatus.COMPLETED
    assert stored.health_score == 38
    assert stored.content["critique"]["overallScore"] == 38
    assert stored.content["critique"]["aiSuggestions"] is None
    assert stored.content["sections"] == []
    assert notifications.of_type("critique_ready")[0].title == "Critique complete - Score: 38/100"


@pytest.mark.asyncio
async def test_critique_stores_ai_suggestions(make_ai, make_document, queued_job, documents, versions, notifications):
    document = make_document()
    ai = make_ai(text="Lead with impact.")
    handler = CritiqueHandler(ai=ai, documents=documents, versions=versions, notifications=notifications)
    job = queued_job(document, "critique", {"documentId": document.id, "userId": document.user_id})

    await handler(job)

    assert documents.rows[document.id].content["critique"]["aiSuggestions"] == "Lead with impact."
    assert ai.calls[0]["timeout"] == 90
