import pytest

from blox_pipeline.jobs.handlers.ats_scan import AtsScanHandler
from blox_pipeline.jobs.handlers.generate import GenerateHandler
from blox_pipeline.scoring.ats import keyword_match, run_checks, scan_content

RESUME_CONTENT = {
    "sections": [
        {"id": "s1", "type": "contact", "content": "Email ada@example.com"},
        {"id": "s2", "type": "experience", "content": "Experience as an engineer at Acme"},
        {"id": "s3", "type": "education", "content": "Education in mathematics"},
        {"id": "s4", "type": "skills", "content": "Skills: Python, SQL"},
    ]
}


def test_checklist_weights_sum_to_100():
    assert sum(check.weight for check in run_checks("")) == 100


def test_resume_without_summary_verbs_or_numbers():
    result = scan_content(RESUME_CONTENT)

    assert result.score == 65
    assert result.failing == [
        "Has professional summary",
        "Uses action verbs",
        "Has quantified achievements",
    ]
    assert result.keyword_match is None


def test_score_is_sum_of_passed_weights():
    content = {"sections": [{"content": "Summary: led a team of 12 engineers and grew revenue 40%"}]}

    result = scan_content(content)

    assert result.score == sum(check.weight for check in result.checks if check.passed)
    passed = {check.key for check in result.checks if check.passed}
    assert {"summary", "action_verbs", "quantified"} <= passed


def test_pipeline_results_are_not_scanned():
    content = {"sections": [], "critique": {"aiSuggestions": "Add your email and a skills section"}}

    assert scan_content(content).score == 0


def test_keyword_match_against_job_description():
    match = keyword_match("python engineer building data pipelines", "Python, Kafka and data modelling. Python!")

    # job words: python, kafka, data, modelling
    assert match.matched == 2
    assert match.score == 50
    assert match.missing == ["kafka", "modelling"]


@pytest.mark.asyncio
async def test_ats_scan_handler_stores_result(make_ai, make_document, queued_job, documents, versions, notifications):
    document = make_document(content=dict(RESUME_CONTENT))
    handler = AtsScanHandler(ai=make_ai(), documents=documents, versions=versions, notifications=notifications)
    job = queued_job(
        document,
        "ats-scan",
        {"documentId": document.id, "userId": document.user_id, "jobDescription": "Python engineer"},
    )

    result = await handler(job)

    stored = documents.rows[document.id]
    assert result["score"] == 65
    assert stored.health_score == 65
    assert stored.content["atsResult"]["score"] == 65
    assert stored.content["atsResult"]["keywordMatch"] == {"score": 100, "matched": 2, "missing": []}
    assert stored.content["sections"] == RESUME_CONTENT["sections"]
    notification = notifications.of_type("ats_scan_ready")[0]
    assert notification.title == "ATS Scan complete - Score: 65/100"
    assert notification.payload["failingChecks"] == 3


@pytest.mark.asyncio
async def test_generation_timestamp_is_not_scanned(
    make_ai, make_document, queued_job, documents, versions, notifications
):
    document = make_document()
    generate = GenerateHandler(
        ai=make_ai(available=False), documents=documents, versions=versions, notifications=notifications
    )
    await generate(
        queued_job(
            document,
            "generate",
            {"documentId": document.id, "type": "RESUME", "prompt": "Data engineer", "userId": document.user_id},
        )
    )
    generated = documents.rows[document.id].content
    assert "+00:00" in generated["generatedAt"]

    handler = AtsScanHandler(ai=make_ai(), documents=documents, versions=versions, notifications=notifications)
    result = await handler(
        queued_job(document, "ats-scan", {"documentId": document.id, "userId": document.user_id})
    )

    assert result["score"] == scan_content({"sections": generated["sections"]}).score
    assert "Has quantified achievements" in documents.rows[document.id].content["atsResult"]["failing"]
