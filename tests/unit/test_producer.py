import json

import pytest

from blox_pipeline.jobs.errors import InvalidRequestError, JobConflictError, NotFoundError
from blox_pipeline.jobs.producer import JobProducer, normalize_subdomain
from blox_pipeline.jobs.queue import JobQueue, QueueError
from blox_pipeline.models.domain.pipeline_domain import JobStatus, PublishTarget, Visibility


class BrokenQueue:
    async def enqueue(self, topic, payload, job_id=None):
        raise QueueError("redis unavailable", operation="enqueue")


@pytest.fixture
def queue(fake_redis):
    return JobQueue(fake_redis, prefix="test")


@pytest.fixture
def producer(queue, documents, import_runs, publish_targets):
    return JobProducer(queue, documents=documents, runs=import_runs, targets=publish_targets)


def _pending(fake_redis, topic):
    return [json.loads(raw) for raw in fake_redis.lists.get(f"test:{topic}:pending", [])]


@pytest.mark.asyncio
async def test_generation_is_queued(producer, make_document, documents, fake_redis):
    document = make_document()

    result = await producer.request_generation(document.id, "user-123", "  Data engineer ")

    stored = documents.rows[document.id]
    assert result == {"jobId": stored.job_id, "status": "queued"}
    assert stored.job_status == JobStatus.QUEUED
    assert stored.job_topic == "generate"
    [job] = _pending(fake_redis, "generate")
    assert job["id"] == stored.job_id
    assert job["payload"] == {
        "documentId": document.id,
        "type": "RESUME",
        "prompt": "Data engineer",
        "userId": "user-123",
    }


@pytest.mark.asyncio
async def test_second_job_while_active_is_a_conflict(producer, make_document, fake_redis):
    document = make_document()
    await producer.request_document_check("critique", document.id, "user-123")

    with pytest.raises(JobConflictError):
        await producer.request_document_check("ats-scan", document.id, "user-123")
    assert _pending(fake_redis, "ats-scan") == []


@pytest.mark.asyncio
async def test_finished_document_can_be_queued_again(producer, make_document, documents):
    document = make_document(job_status=JobStatus.COMPLETED, job_id="old-job")

    result = await producer.request_document_check("seo-audit", document.id, "user-123")

    assert documents.rows[document.id].job_id == result["jobId"] != "old-job"


@pytest.mark.asyncio
async def test_requests_are_scoped_to_the_owner(producer, make_document):
    document = make_document(user_id="someone-else")

    with pytest.raises(NotFoundError):
        await producer.request_generation(document.id, "user-123", "Data engineer")


@pytest.mark.asyncio
async def test_empty_prompt_is_rejected(producer, make_document, documents):
    document = make_document()

    with pytest.raises(InvalidRequestError):
        await producer.request_generation(document.id, "user-123", "   ")
    assert documents.rows[document.id].job_status == JobStatus.IDLE


@pytest.mark.asyncio
async def test_check_topic_must_be_a_check(producer, make_document):
    document = make_document()

    with pytest.raises(InvalidRequestError):
        await producer.request_document_check("generate", document.id, "user-123")


@pytest.mark.asyncio
async def test_enqueue_failure_leaves_document_failed(documents, import_runs, publish_targets, make_document):
    producer = JobProducer(BrokenQueue(), documents=documents, runs=import_runs, targets=publish_targets)
    document = make_document()

    with pytest.raises(QueueError):
        await producer.request_document_check("critique", document.id, "user-123")

    stored = documents.rows[document.id]
    assert stored.job_status == JobStatus.FAILED
    assert stored.job_message.startswith("Could not queue job")
    assert [status for status, _ in documents.status_history[document.id]] == [
        "queued",
        "processing",
        "failed",
    ]


@pytest.mark.asyncio
async def test_tailored_copy_with_job_description(producer, make_document, documents, fake_redis):
    source = make_document(content={"sections": [{"id": "section-0", "type": "summary", "content": "Hi"}]})

    result = await producer.request_tailored_copy(source.id, "user-123", "Python engineer")

    copy = result["document"]
    assert copy.title == "Ada Lovelace Resume (Tailored)"
    assert copy.content == source.content
    assert result["job"]["status"] == "queued"
    assert documents.rows[source.id].job_status == JobStatus.IDLE
    [job] = _pending(fake_redis, "duplicate")
    assert job["payload"]["sourceDocumentId"] == source.id
    assert job["payload"]["documentId"] == copy.id


@pytest.mark.asyncio
async def test_tailored_copy_without_job_description(producer, make_document, fake_redis):
    source = make_document()

    result = await producer.request_tailored_copy(source.id, "user-123", "  ")

    assert result["job"] is None
    assert _pending(fake_redis, "duplicate") == []


@pytest.mark.asyncio
async def test_start_import(producer, import_runs, fake_redis):
    result = await producer.start_import("user-123", ["GitHub", "linkedin", "github"], persona="Creative")

    run = import_runs.rows[result["runId"]]
    assert result["status"] == "queued"
    assert run.providers == ["github", "linkedin"]
    assert run.queue_job_id == result["jobId"]
    [job] = _pending(fake_redis, "import-unify")
    assert job["payload"]["persona"] == "Creative"
    assert job["payload"]["providers"] == ["github", "linkedin"]


@pytest.mark.asyncio
async def test_start_import_validates_providers(producer, import_runs):
    with pytest.raises(InvalidRequestError):
        await producer.start_import("user-123", [])
    with pytest.raises(InvalidRequestError, match="myspace"):
        await producer.start_import("user-123", ["github", "myspace"])
    assert import_runs.rows == {}


@pytest.mark.asyncio
async def test_start_import_enqueue_failure_fails_run(documents, import_runs, publish_targets):
    producer = JobProducer(BrokenQueue(), documents=documents, runs=import_runs, targets=publish_targets)

    with pytest.raises(QueueError):
        await producer.start_import("user-123", ["github"])

    [run] = import_runs.rows.values()
    assert run.status == JobStatus.FAILED


@pytest.mark.asyncio
async def test_publish_normalizes_subdomain(producer, make_document, documents, publish_targets, fake_redis):
    document = make_document()

    result = await producer.request_publish(document.id, "user-123", " Ada Lovelace ")

    assert result["subdomain"] == "ada-lovelace"
    assert result["status"] == "publishing"
    assert result["publishedUrl"] == "https://ada-lovelace.blox.app"
    stored = documents.rows[document.id]
    assert stored.slug == "ada-lovelace"
    assert stored.visibility == Visibility.PRIVATE
    [target] = publish_targets.rows.values()
    assert target.is_active is False
    [job] = _pending(fake_redis, "publish")
    assert job["payload"]["targetId"] == target.id


@pytest.mark.asyncio
async def test_publish_rejects_reserved_and_taken_subdomains(producer, make_document, publish_targets):
    document = make_document()
    publish_targets.add(PublishTarget(id="t-1", document_id="other-doc", subdomain="taken"))

    with pytest.raises(InvalidRequestError):
        await producer.request_publish(document.id, "user-123", "Dashboard")
    with pytest.raises(InvalidRequestError):
        await producer.request_publish(document.id, "user-123", "---")
    with pytest.raises(JobConflictError):
        await producer.request_publish(document.id, "user-123", "taken")


@pytest.mark.asyncio
async def test_notify_billing(producer, fake_redis):
    await producer.notify_billing("user-123", "trial_ending", days_remaining=2)

    [job] = _pending(fake_redis, "billing-notify")
    assert job["payload"] == {"userId": "user-123", "event": "trial_ending", "daysRemaining": 2}

    with pytest.raises(InvalidRequestError):
        await producer.notify_billing("user-123", "refunded")


def test_normalize_subdomain():
    assert normalize_subdomain("  My_Site.Dev ") == "my-site-dev"
