from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
import uuid

import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.main import app
from app.services.llm import LLMError, get_analysis_client, get_moderation_client
from app.services.mailer import BulkSendResult, SendResult, get_mailer
from app.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryValidationError,
    get_repository,
)


class FakeRepository:
    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.jobs: dict[str, dict[str, Any]] = {}
        self.workers: dict[str, dict[str, Any]] = {}
        self.applications: dict[str, dict[str, Any]] = {}
        self.job_counts: dict[tuple[str, str | None], int] = {}
        self.worker_counts: dict[tuple[str, str | None], int] = {}
        self.publish_calls: list[dict[str, Any]] = []

    async def close(self) -> None:
        return None

    # users

    def seed_user(self, uid: str, *, email: str, role: str = "user", status: str = "approved") -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        row = {
            "uid": uid,
            "email": email,
            "display_name": "",
            "photo_url": "",
            "bio": "",
            "company": "",
            "phone": "",
            "location": "",
            "role": role,
            "status": status,
            "created_at": now,
            "updated_at": now,
        }
        self.users[uid] = row
        return row

    async def get_user(self, uid: str) -> dict[str, Any] | None:
        return self.users.get(uid)

    async def create_user_profile(
        self,
        *,
        uid: str,
        email: str,
        display_name: str,
        photo_url: str,
        is_admin: bool,
    ) -> dict[str, Any]:
        if uid in self.users:
            return self.users[uid]
        row = self.seed_user(
            uid,
            email=email,
            role="admin" if is_admin else "user",
            status="approved" if is_admin else "incomplete",
        )
        row["display_name"] = display_name
        row["photo_url"] = photo_url
        return row

    async def complete_user_profile(self, *, uid: str, fields: dict[str, Any]) -> dict[str, Any]:
        row = self.users.get(uid)
        if row is None:
            raise RepositoryNotFoundError("user not found")
        for key in ("display_name", "company", "phone", "location", "bio"):
            row[key] = fields.get(key) or ""
        if fields.get("photo_url") is not None:
            row["photo_url"] = fields["photo_url"]
        if row["status"] == "incomplete":
            row["status"] = "pending"
        return row

    async def list_users(self, *, status: str | None, limit: int, offset: int) -> list[dict[str, Any]]:
        rows = [row for row in self.users.values() if status is None or row["status"] == status]
        return rows[offset : offset + limit]

    async def set_user_status(self, *, uid: str, status: str) -> dict[str, Any]:
        row = self.users.get(uid)
        if row is None:
            raise RepositoryNotFoundError("user not found")
        if row["status"] != "pending":
            raise RepositoryConflictError(f"cannot move user from {row['status']} to {status}")
        row["status"] = status
        return row

    # jobs

    def seed_job(self, *, user_id: str, **fields: Any) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        row = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "title": "Tractor driver",
            "description": "Seasonal harvest work",
            "location": "Purulia",
            "district": "Purulia",
            "block": None,
            "salary": "12,000",
            "requirements": "",
            "required_skills": ["Driving"],
            "employment_type": "seasonal",
            "employer_name": "Green Fields Co-op",
            "contact": "+91 90000 00000",
            "is_public": True,
            "moderation_verdict": "auto-approved",
            "moderation_reason": None,
            "status": "approved",
            "scheduled_at": None,
            "created_at": now,
            "updated_at": now,
        }
        row.update(fields)
        self.jobs[row["id"]] = row
        return row

    async def create_job(
        self,
        *,
        user_id: str,
        fields: dict[str, Any],
        moderation_verdict: str,
        moderation_reason: str | None,
        status: str,
        is_public: bool,
    ) -> dict[str, Any]:
        if status not in {"pending", "approved", "rejected"}:
            raise RepositoryValidationError(f"unknown job status: {status}")
        return self.seed_job(
            user_id=user_id,
            **fields,
            moderation_verdict=moderation_verdict,
            moderation_reason=moderation_reason,
            status=status,
            is_public=is_public,
        )

    async def get_job(self, job_id: str) -> dict[str, Any] | None:
        return self.jobs.get(job_id)

    async def list_jobs(
        self,
        *,
        user_id: str | None = None,
        public_only: bool = False,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        rows = list(self.jobs.values())
        if user_id is not None:
            rows = [row for row in rows if row["user_id"] == user_id]
        if public_only:
            rows = [row for row in rows if row["status"] == "approved" and row["is_public"]]
        if status is not None:
            rows = [row for row in rows if row["status"] == status]
        return rows[offset : offset + limit]

    async def update_job(self, *, job_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        row = self.jobs.get(job_id)
        if row is None:
            raise RepositoryNotFoundError("job not found")
        row.update(fields)
        return row

    async def set_job_review_status(self, *, job_id: str, status: str, reason: str | None) -> dict[str, Any]:
        row = self.jobs.get(job_id)
        if row is None:
            raise RepositoryNotFoundError("job not found")
        row["status"] = status
        row["is_public"] = status == "approved" and row["scheduled_at"] is None
        if status == "rejected":
            row["moderation_verdict"] = "rejected"
        if reason is not None:
            row["moderation_reason"] = reason
        return row

    async def delete_job(self, job_id: str) -> None:
        if self.jobs.pop(job_id, None) is None:
            raise RepositoryNotFoundError("job not found")

    async def publish_due_jobs(self, *, now: datetime | None = None, limit: int = 100) -> int:
        current = now or datetime.now(timezone.utc)
        self.publish_calls.append({"now": current, "limit": limit})
        published = 0
        for row in self.jobs.values():
            if published >= limit:
                break
            scheduled_at = row["scheduled_at"]
            if row["status"] == "approved" and scheduled_at is not None and scheduled_at <= current:
                row["is_public"] = True
                row["scheduled_at"] = None
                published += 1
        return published

    async def count_jobs(self, *, district: str, block: str | None = None) -> int:
        return self.job_counts.get((district, block), 0)

    async def count_workers(self, *, district: str, block: str | None = None) -> int:
        return self.worker_counts.get((district, block), 0)

    # workers and applications

    def seed_worker(self, **fields: Any) -> dict[str, Any]:
        row = {
            "id": str(uuid.uuid4()),
            "name": "Ram Kumar",
            "email": "ram@example.in",
            "phone": "+91 98765 43210",
            "district": "Purulia",
            "block": "Jhalda",
            "village": None,
            "skills": ["Driving"],
            "experience": 3,
            "education": "Class 10",
            "rating": 0,
        }
        row.update(fields)
        self.workers[row["id"]] = row
        return row

    async def get_worker(self, worker_id: str) -> dict[str, Any] | None:
        return self.workers.get(worker_id)

    async def list_workers_in_district(self, district: str) -> list[dict[str, Any]]:
        return [row for row in self.workers.values() if row["district"] == district]

    def seed_application(self, *, job_id: str, worker_id: str, status: str = "pending") -> dict[str, Any]:
        row = {
            "id": str(uuid.uuid4()),
            "job_id": job_id,
            "worker_id": worker_id,
            "status": status,
            "submitted_at": datetime.now(timezone.utc),
            "decided_at": None,
        }
        self.applications[row["id"]] = row
        return row

    async def create_application(self, *, job_id: str, worker_id: str) -> dict[str, Any]:
        if worker_id not in self.workers:
            raise RepositoryNotFoundError("job or worker not found")
        for row in self.applications.values():
            if row["job_id"] == job_id and row["worker_id"] == worker_id:
                raise RepositoryConflictError("worker already applied to this job")
        return self.seed_application(job_id=job_id, worker_id=worker_id)

    async def get_application(self, application_id: str) -> dict[str, Any] | None:
        return self.applications.get(application_id)

    async def list_job_applications(self, job_id: str) -> list[dict[str, Any]]:
        return [row for row in self.applications.values() if row["job_id"] == job_id]

    async def decide_application(self, *, application_id: str, status: str) -> tuple[dict[str, Any], int | None]:
        row = self.applications.get(application_id)
        if row is None:
            raise RepositoryNotFoundError("application not found")
        if row["status"] != "pending":
            raise RepositoryConflictError(f"application already {row['status']}")
        row["status"] = status
        row["decided_at"] = datetime.now(timezone.utc)
        rating = None
        if status == "accepted":
            worker = self.workers[row["worker_id"]]
            worker["rating"] += 1
            rating = worker["rating"]
        return row, rating


class FakeMailer:
    def __init__(self, *, admin_email: str | None = "ops@signalx.test") -> None:
        self.admin_email = admin_email
        self.sent: list[dict[str, str]] = []
        self.failing: set[str] = set()
        self.ready = True

    async def verify(self) -> bool:
        return self.ready

    async def send(self, *, to: str, subject: str, html: str) -> SendResult:
        if to in self.failing:
            return SendResult(success=False, error="550 mailbox unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html})
        return SendResult(success=True, message_id=f"<{len(self.sent)}@signalx.test>")

    async def send_bulk(self, *, recipients: list[str], subject: str, html: str) -> BulkSendResult:
        results = [await self.send(to=to, subject=subject, html=html) for to in recipients]
        successful = sum(1 for result in results if result.success)
        return BulkSendResult(successful=successful, failed=len(results) - successful, results=results)

    async def send_admin_alert(self, *, subject: str, html: str) -> SendResult:
        if not self.admin_email:
            return SendResult(success=False, error="Admin email not set")
        return await self.send(to=self.admin_email, subject=subject, html=html)


class FakeChatClient:
    def __init__(self, *replies: str | Exception, enabled: bool = True) -> None:
        self.replies = list(replies)
        self._enabled = enabled
        self.calls: list[list[dict[str, str]]] = []

    def enabled(self) -> bool:
        return self._enabled

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> str:
        self.calls.append(messages)
        if not self.replies:
            raise LLMError("no scripted reply")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def fake_repo() -> FakeRepository:
    repo = FakeRepository()
    repo.seed_user("admin-1", email="admin@signalx.com", role="admin")
    repo.seed_user("employer-1", email="hr@greenfields.in")
    repo.seed_user("pending-1", email="new@employer.in", status="pending")
    return repo


@pytest.fixture
def fake_mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def moderation_client() -> FakeChatClient:
    return FakeChatClient('{"safe": true, "reason": "Legitimate agricultural job"}')


@pytest.fixture
def analysis_client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def api_client(
    fake_repo: FakeRepository,
    fake_mailer: FakeMailer,
    moderation_client: FakeChatClient,
    analysis_client: FakeChatClient,
) -> TestClient:
    get_settings.cache_clear()
    app.dependency_overrides[get_repository] = lambda: fake_repo
    app.dependency_overrides[get_mailer] = lambda: fake_mailer
    app.dependency_overrides[get_moderation_client] = lambda: moderation_client
    app.dependency_overrides[get_analysis_client] = lambda: analysis_client
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
    get_settings.cache_clear()
