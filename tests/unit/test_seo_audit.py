import pytest

from blox_pipeline.jobs.handlers.seo_audit import SeoAuditHandler
from blox_pipeline.scoring.seo import (
    DESCRIPTION_MAX,
    DESCRIPTION_MIN,
    TITLE_MAX,
    TITLE_MIN,
    audit,
)

SEO_CONFIG = {
    "title": "T" * 45,
    "description": "D" * 90,
    "keywords": ["python", "data"],
}


def test_partial_metadata_scores_forty():
    result = audit(SEO_CONFIG, "Fallback title", {"sections": []})

    assert result.score == 40
    passed = [check.key for check in result.checks if check.passed]
    assert passed == ["title_length", "description"]
    assert "Improve Has at least 3 target keywords (current: 2 keywords)" in result.suggestions


def test_labels_state_the_ranges_they_check():
    labels = {check.key: check.label for check in audit({}, "", {}).checks}

    assert labels["title_length"] == f"Title is {TITLE_MIN}-{TITLE_MAX} characters"
    assert str(DESCRIPTION_MIN) in labels["description"]
    assert str(DESCRIPTION_MAX) in labels["description"]


def test_document_title_is_used_when_seo_title_missing():
    result = audit({}, "A" * 31, {})

    title_check = result.checks[0]
    assert title_check.passed is True
    assert title_check.current == "31 chars"


def test_complete_metadata_scores_full_marks():
    config = {
        **SEO_CONFIG,
        "keywords": ["python", "data", "etl"],
        "ogImage": "https://cdn.blox.app/og.png",
        "structuredData": {"@type": "Person"},
    }
    content = {"sections": [{"content": "x" * 600}]}

    result = audit(config, "", content)

    assert result.score == 100
    assert result.suggestions == []


@pytest.mark.asyncio
async def test_seo_audit_handler_writes_seo_config(
    make_ai, make_document, queued_job, documents, versions, notifications
):
    document = make_document(seo_config=dict(SEO_CONFIG))
    handler = SeoAuditHandler(ai=make_ai(), documents=documents, versions=versions, notifications=notifications)
    job = queued_job(document, "seo-audit", {"documentId": document.id, "userId": document.user_id})

    result = await handler(job)

    stored = documents.rows[document.id]
    assert result["score"] == 40
    assert stored.seo_config["auditScore"] == 40
    assert stored.seo_config["title"] == SEO_CONFIG["title"]
    assert len(stored.seo_config["auditSuggestions"]) == 4
    assert "auditScore" not in stored.content
    assert notifications.of_type("seo_audit_ready")[0].payload["suggestions"] == 4
