import copy
from dataclasses import replace
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from blox_pipeline.auth.verify import auth_dependency
from blox_pipeline.jobs.errors import NotFoundError, StatusTransitionError, TransientExternalError
from blox_pipeline.jobs.queue import JobEnvelope
from blox_pipeline.jobs.status import ensure_transition
from blox_pipeline.models.domain.pipeline_domain import (
    Document,
    DocumentType,
    DocumentVersion,
    ImportRun,
    JobStatus,
    Notification,
    PublishTarget,
    UserContact,
)
from blox_pipeline.repositories.document_repository import clamp_score, merge_content


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


class FakePipeline:
    """Buffers commands and applies them on execute()."""

    def __init__(self, redis: "FakeRedis"):
        self.redis = redis
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __getattr__(self, name):
        def _record(*args):
            self.commands.append((name, args))
            return self

        return _record

    async def execute(self):
        return [await getattr(self.redis, name)(*args) for name, args in self.commands]


class FakeRedis:
    """The list, hash and sorted-set commands the job queue uses."""

    def __init__(self):
        self.lists: dict[str, list[str]] = {}
        self.hashes: dict[str, dict[str, int]] = {}
        self.zsets: dict[str, dict[str, float]] = {}

    async def ping(self) -> bool:
        return True

    async def lpush(self, key: str, *values: str) -> int:
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    async def blmove(self, source, destination, timeout, src_side="RIGHT", dest_side="LEFT"):
        items = self.lists.get(source) or []
        if not items:
            return None
        value = items.pop() if src_side == "RIGHT" else items.pop(0)
        target = self.lists.setdefault(destination, [])
        if dest_side == "LEFT":
            target.insert(0, value)
        else:
            target.append(value)
        return value

    async def lrem(self, key: str, count: int, value: str) -> int:
        items = self.lists.get(key, [])
        removed = 0
        while value in items and (count == 0 or removed < count):
            items.remove(value)
            removed += 1
        return removed

    async def llen(self, key: str) -> int:
        return len(self.lists.get(key, []))

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        bucket = self.hashes.setdefault(key, {})
        bucket[field] = bucket.get(field, 0) + amount
        return bucket[field]

    async def hdel(self, key: str, *fields: str) -> int:
        bucket = self.hashes.get(key, {})
        return sum(1 for field in fields if bucket.pop(field, None) is not None)

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        items = self.lists.get(key, [])
        return list(items[start:] if end == -1 else items[start : end + 1])

    async def zadd(self, key: str, mapping: dict[str, float], nx: bool = False) -> int:
        zset = self.zsets.setdefault(key, {})
        added = {member: score for member, score in mapping.items() if not (nx and member in zset)}
        new = sum(1 for member in added if member not in zset)
        zset.update(added)
        return new

    async def zrem(self, key: str, *members: str) -> int:
        zset = self.zsets.get(key, {})
        return sum(1 for member in members if zset.pop(member, None) is not None)

    async def zrangebyscore(self, key: str, min_score, max_score) -> list[str]:
        zset = self.zsets.get(key, {})
        return [member for member, score in sorted(zset.items(), key=lambda i: i[1]) if score <= float(max_score)]

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


@pytest.fixture
def fake_redis():
    return FakeRedis()


class FakeDocuments:
    """In-memory document store enforcing the job status state machine."""

    def __init__(self):
        self.rows: dict[str, Document] = {}
        self.status_history: dict[str, list[tuple[str, str]]] = {}

    def add(self, document: Document) -> Document:
        self.rows[document.id] = document
        return document

    async def load(self, document_id, user_id=None):
        document = self.rows.get(document_id)
        if document is None or (user_id is not None and document.user_id != user_id):
            return None
        return replace(document, content=copy.deepcopy(document.content), seo_config=copy.deepcopy(document.seo_config))

    async def require(self, document_id, user_id=None):
        document = await self.load(document_id, user_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    async def create_copy(self, source, title):
        return self.add(
            replace(
                source,
                id=str(uuid4()),
                title=title,
                content=copy.deepcopy(source.content),
                job_status=JobStatus.IDLE,
                job_id=None,
                job_topic=None,
                job_message=None,
                revision=0,
            )
        )

    async def set_job_status(self, document_id, status, *, job_id, topic=None, message=None):
        document = self.rows.get(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        status = JobStatus(status)
        if status != JobStatus.QUEUED and document.job_id != job_id:
            raise StatusTransitionError(f"{document.job_status} (job {document.job_id})", status)
        ensure_transition(document.job_status, status)

        document.job_status = status
        document.job_id = job_id
        document.job_topic = topic or document.job_topic
        document.job_message = message
        self.status_history.setdefault(document_id, []).append((status.value, job_id))

    async def update_content(self, document_id, build_patch, *, health_score=None, field="content"):
        document = self.rows.get(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        merged = merge_content(getattr(document, field), build_patch(document))
        setattr(document, field, merged)
        if health_score is not None:
            document.health_score = clamp_score(health_score)
        document.revision += 1
        return document

    async def set_publication(self, document_id, *, visibility, published_url=None, slug=None):
        document = self.rows[document_id]
        document.visibility = visibility
        document.published_url = published_url or document.published_url
        document.slug = slug or document.slug


class FakeVersions:
    def __init__(self):
        self.rows: list[DocumentVersion] = []

    async def create_for_job(self, *, document_id, source_job_id, label, content, created_by, branch="main"):
        for version in self.rows:
            if version.document_id == document_id and version.source_job_id == source_job_id:
                return version
        version = DocumentVersion(
            id=str(uuid4()),
            document_id=document_id,
            label=label,
            branch=branch,
            content=copy.deepcopy(content),
            created_by=created_by,
            source_job_id=source_job_id,
        )
        self.rows.append(version)
        return version


class FakeNotifications:
    def __init__(self):
        self.rows: list[Notification] = []

    async def create(self, *, user_id, type, title, payload, source_job_id=None):
        for existing in self.rows:
            if source_job_id and existing.source_job_id == source_job_id and existing.type == type:
                return existing
        notification = Notification(
            id=str(uuid4()),
            user_id=user_id,
            type=type,
            title=title,
            payload=payload,
            source_job_id=source_job_id,
            created_at=datetime.now(UTC),
        )
        self.rows.append(notification)
        return notification

    def of_type(self, type: str) -> list[Notification]:
        return [n for n in self.rows if n.type == type]


class FakeImportRuns:
    def __init__(self):
        self.rows: dict[str, ImportRun] = {}
        self.progress: dict[str, list[int]] = {}

    async def create(self, user_id, providers):
        run = ImportRun(
            id=str(uuid4()),
            user_id=user_id,
            providers=list(providers),
            status=JobStatus.QUEUED,
            progress_pct=2,
        )
        self.rows[run.id] = run
        return run

    async def load(self, run_id, user_id=None):
        run = self.rows.get(run_id)
        if run is None or (user_id is not None and run.user_id != user_id):
            return None
        return replace(run)

    async def set_queue_job_id(self, run_id, job_id):
        self.rows[run_id].queue_job_id = job_id

    async def update(
        self,
        run_id,
        *,
        status=None,
        progress_pct=None,
        message=None,
        merged_profile=None,
        failed_providers=None,
    ):
        run = self.rows.get(run_id)
        if run is None:
            raise NotFoundError(f"Import run {run_id} not found")
        if status is not None:
            run.status = ensure_transition(run.status, status)
        if progress_pct is not None:
            run.progress_pct = progress_pct
            self.progress.setdefault(run_id, []).append(progress_pct)
        if message is not None:
            run.message = message
        if merged_profile is not None:
            run.merged_profile = merged_profile
        if failed_providers is not None:
            run.failed_providers = list(failed_providers)


class FakePublishTargets:
    def __init__(self):
        self.rows: dict[str, PublishTarget] = {}

    def add(self, target: PublishTarget) -> PublishTarget:
        self.rows[target.id] = target
        return target

    async def load(self, target_id):
        target = self.rows.get(target_id)
        return replace(target) if target else None

    async def subdomain_taken(self, subdomain, document_id):
        return any(t.subdomain == subdomain and t.document_id != document_id for t in self.rows.values())

    async def upsert_inactive(self, document_id, subdomain, custom_domain=None):
        for target in self.rows.values():
            if target.document_id == document_id:
                target.subdomain = subdomain
                target.custom_domain = custom_domain
                return replace(target)
        return replace(
            self.add(
                PublishTarget(
                    id=str(uuid4()), document_id=document_id, subdomain=subdomain, custom_domain=custom_domain
                )
            )
        )

    async def activate(self, target_id):
        target = self.rows.get(target_id)
        if target is None:
            raise NotFoundError(f"Publish target {target_id} not found")
        target.is_active = True
        target.published_at = target.published_at or datetime.now(UTC)
        return replace(target)


class FakeUsers:
    def __init__(self):
        self.contacts: dict[str, UserContact] = {}
        self.tokens: dict[str, dict[str, str]] = {}

    async def load_contact(self, user_id):
        return self.contacts.get(user_id)

    async def oauth_tokens(self, user_id, providers):
        stored = self.tokens.get(user_id, {})
        return {p: t for p, t in stored.items() if p in providers}


class FakeAI:
    """Returns `text`, or raises TransientExternalError when `available` is False."""

    def __init__(self, text: str = "", available: bool = True):
        self.text = text
        self.available = available
        self.calls: list[dict] = []

    async def generate(self, prompt, *, asset_type="RESUME", timeout=None, context=None, route="generation_critique"):
        self.calls.append({"prompt": prompt, "asset_type": asset_type, "timeout": timeout})
        if not self.available:
            raise TransientExternalError("AI service timed out", service="ai")
        return self.text


class FakeMailer:
    def __init__(self, available: bool = True):
        self.available = available
        self.sent: list[tuple[str, str]] = []

    async def send(self, to, subject, html):
        if not self.available:
            raise TransientExternalError("SMTP connection refused", service="mail")
        self.sent.append((to, subject))


class FakeProviders:
    """Serves canned profiles; providers listed in `failing` raise."""

    def __init__(self, profiles=None, failing=()):
        self.profiles = profiles or {}
        self.failing = set(failing)
        self.calls: list[tuple[str, str]] = []

    async def fetch(self, provider, token):
        self.calls.append((provider, token))
        if provider in self.failing:
            raise TransientExternalError(f"{provider} returned 502", service=provider, status_code=502)
        return self.profiles[provider]


@pytest.fixture
def make_ai():
    return FakeAI


@pytest.fixture
def make_mailer():
    return FakeMailer


@pytest.fixture
def make_providers():
    return FakeProviders


@pytest.fixture
def documents():
    return FakeDocuments()


@pytest.fixture
def versions():
    return FakeVersions()


@pytest.fixture
def notifications():
    return FakeNotifications()


@pytest.fixture
def import_runs():
    return FakeImportRuns()


@pytest.fixture
def publish_targets():
    return FakePublishTargets()


@pytest.fixture
def users():
    return FakeUsers()


@pytest.fixture
def make_document(documents):
    def _make(**overrides) -> Document:
        values = {
            "id": str(uuid4()),
            "user_id": "user-123",
            "type": DocumentType.RESUME,
            "title": "Ada Lovelace Resume",
            "content": {"sections": []},
        }
        values.update(overrides)
        return documents.add(Document(**values))

    return _make


@pytest.fixture
def queued_job(documents):
    """Put a document into `queued` for a new job and return its envelope."""

    def _queue(document: Document, topic: str, payload: dict, attempt: int = 1) -> JobEnvelope:
        job_id = str(uuid4())
        document.job_status = JobStatus.QUEUED
        document.job_id = job_id
        document.job_topic = topic
        return JobEnvelope(
            id=job_id,
            topic=topic,
            payload=payload,
            enqueued_at=datetime.now(UTC).isoformat(),
            attempt=attempt,
        )

    return _queue
