from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from app.core.config import get_settings


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when an operation violates state transition rules."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


USER_STATUSES = {"incomplete", "pending", "approved", "rejected"}
JOB_STATUSES = {"pending", "approved", "rejected"}
MODERATION_VERDICTS = {"auto-approved", "flagged", "manual", "rejected"}
APPLICATION_DECISIONS = {"accepted", "rejected"}
JOB_EDITABLE_FIELDS = (
    "title",
    "description",
    "location",
    "district",
    "block",
    "salary",
    "requirements",
    "required_skills",
    "employment_type",
    "employer_name",
    "contact",
    "scheduled_at",
)

_USER_COLUMNS = """
  uid,
  email,
  display_name,
  photo_url,
  bio,
  company,
  phone,
  location,
  role,
  status,
  created_at,
  updated_at
"""

_JOB_COLUMNS = """
  id::text as id,
  user_id,
  title,
  description,
  location,
  district,
  block,
  salary,
  requirements,
  required_skills,
  employment_type,
  employer_name,
  contact,
  is_public,
  moderation_verdict,
  moderation_reason,
  status,
  scheduled_at,
  created_at,
  updated_at
"""

_WORKER_COLUMNS = """
  id::text as id,
  name,
  email,
  phone,
  district,
  block,
  village,
  skills,
  experience,
  education,
  rating
"""

_APPLICATION_COLUMNS = """
  id::text as id,
  job_id::text as job_id,
  worker_id::text as worker_id,
  status,
  submitted_at,
  decided_at
"""


class PostgresRepository:
    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # ---------- users ----------

    async def get_user(self, uid: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(f"select {_USER_COLUMNS} from users where uid = $1", uid)
        return self._user_row_to_dict(row) if row else None

    async def create_user_profile(
        self,
        *,
        uid: str,
        email: str,
        display_name: str,
        photo_url: str,
        is_admin: bool,
    ) -> dict[str, Any]:
        """Insert the profile on first sign-in; an existing profile is returned untouched."""
        pool = await self._get_pool()
        role = "admin" if is_admin else "user"
        status = "approved" if is_admin else "incomplete"
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    insert into users (uid, email, display_name, photo_url, role, status)
                    values ($1, $2, $3, $4, $5, $6)
                    on conflict (uid) do nothing
                    """,
                    uid,
                    email,
                    display_name,
                    photo_url,
                    role,
                    status,
                )
                row = await conn.fetchrow(f"select {_USER_COLUMNS} from users where uid = $1", uid)
        return self._user_row_to_dict(row)

    async def complete_user_profile(self, *, uid: str, fields: dict[str, Any]) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            update users
            set
              display_name = $2,
              company = $3,
              phone = $4,
              location = $5,
              bio = $6,
              photo_url = coalesce($7, photo_url),
              status = case when status = 'incomplete' then 'pending' else status end,
              updated_at = now()
            where uid = $1
            returning {_USER_COLUMNS}
            """,
            uid,
            fields.get("display_name") or "",
            fields.get("company") or "",
            fields.get("phone") or "",
            fields.get("location") or "",
            fields.get("bio") or "",
            fields.get("photo_url"),
        )
        if not row:
            raise RepositoryNotFoundError("user not found")
        return self._user_row_to_dict(row)

    async def list_users(self, *, status: str | None, limit: int, offset: int) -> list[dict[str, Any]]:
        if status is not None and status not in USER_STATUSES:
            raise RepositoryValidationError("status must be one of: incomplete, pending, approved, rejected")
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_USER_COLUMNS}
            from users
            where ($1::text is null or status = $1::text)
            order by created_at desc
            limit $2 offset $3
            """,
            status,
            limit,
            offset,
        )
        return [self._user_row_to_dict(row) for row in rows]

    async def set_user_status(self, *, uid: str, status: str) -> dict[str, Any]:
        if status not in {"approved", "rejected"}:
            raise RepositoryValidationError("status must be one of: approved, rejected")
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                existing = await conn.fetchrow("select status from users where uid = $1 for update", uid)
                if not existing:
                    raise RepositoryNotFoundError("user not found")
                if existing["status"] != "pending":
                    raise RepositoryConflictError(
                        f"cannot move user from {existing['status']} to {status}",
                    )
                row = await conn.fetchrow(
                    f"""
                    update users
                    set status = $2, updated_at = now()
                    where uid = $1
                    returning {_USER_COLUMNS}
                    """,
                    uid,
                    status,
                )
        return self._user_row_to_dict(row)

    # ---------- jobs ----------

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
        if moderation_verdict not in MODERATION_VERDICTS:
            raise RepositoryValidationError(f"unknown moderation verdict: {moderation_verdict}")
        if status not in JOB_STATUSES:
            raise RepositoryValidationError(f"unknown job status: {status}")
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into jobs (
                  user_id,
                  title,
                  description,
                  location,
                  district,
                  block,
                  salary,
                  requirements,
                  required_skills,
                  employment_type,
                  employer_name,
                  contact,
                  scheduled_at,
                  is_public,
                  moderation_verdict,
                  moderation_reason,
                  status
                )
                values ($1, $2, $3, $4, $5, $6, $7, $8, $9::text[], $10, $11, $12, $13, $14, $15, $16, $17)
                returning {_JOB_COLUMNS}
                """,
                user_id,
                fields["title"],
                fields.get("description") or "",
                fields.get("location") or "",
                self._coerce_text(fields.get("district")),
                self._coerce_text(fields.get("block")),
                fields.get("salary") or "",
                fields.get("requirements") or "",
                self._coerce_text_list(fields.get("required_skills")),
                fields.get("employment_type"),
                self._coerce_text(fields.get("employer_name")),
                self._coerce_text(fields.get("contact")),
                fields.get("scheduled_at"),
                is_public,
                moderation_verdict,
                moderation_reason,
                status,
            )
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryNotFoundError("employer not found") from exc
        return self._job_row_to_dict(row)

    async def get_job(self, job_id: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(f"select {_JOB_COLUMNS} from jobs where id = $1::uuid", job_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._job_row_to_dict(row) if row else None

    async def list_jobs(
        self,
        *,
        user_id: str | None = None,
        public_only: bool = False,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_JOB_COLUMNS}
            from jobs
            where ($1::text is null or user_id = $1::text)
              and (not $2::boolean or (status = 'approved' and is_public))
              and ($3::text is null or status = $3::text)
            order by created_at desc
            limit $4 offset $5
            """,
            user_id,
            public_only,
            status,
            limit,
            offset,
        )
        return [self._job_row_to_dict(row) for row in rows]

    async def update_job(self, *, job_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial edit; moderation columns are passed through ``fields`` when re-moderated."""
        allowed = set(JOB_EDITABLE_FIELDS) | {"moderation_verdict", "moderation_reason", "status", "is_public"}
        updates = {key: value for key, value in fields.items() if key in allowed}
        if not updates:
            existing = await self.get_job(job_id)
            if existing is None:
                raise RepositoryNotFoundError("job not found")
            return existing

        assignments: list[str] = []
        values: list[Any] = [job_id]
        for key, value in updates.items():
            values.append(self._coerce_text_list(value) if key == "required_skills" else value)
            cast = "::text[]" if key == "required_skills" else ""
            assignments.append(f"{key} = ${len(values)}{cast}")

        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update jobs
                set {", ".join(assignments)}, updated_at = now()
                where id = $1::uuid
                returning {_JOB_COLUMNS}
                """,
                *values,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job not found") from exc
        if not row:
            raise RepositoryNotFoundError("job not found")
        return self._job_row_to_dict(row)

    async def set_job_review_status(self, *, job_id: str, status: str, reason: str | None) -> dict[str, Any]:
        if status not in {"approved", "rejected"}:
            raise RepositoryValidationError("status must be one of: approved, rejected")
        verdict = "rejected" if status == "rejected" else None
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update jobs
                set
                  status = $2,
                  is_public = case when $2 = 'approved' then scheduled_at is null or scheduled_at <= now() else false end,
                  moderation_verdict = coalesce($3, moderation_verdict),
                  moderation_reason = coalesce($4, moderation_reason),
                  updated_at = now()
                where id = $1::uuid
                returning {_JOB_COLUMNS}
                """,
                job_id,
                status,
                verdict,
                reason,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job not found") from exc
        if not row:
            raise RepositoryNotFoundError("job not found")
        return self._job_row_to_dict(row)

    async def delete_job(self, job_id: str) -> None:
        pool = await self._get_pool()
        try:
            result = await pool.execute("delete from jobs where id = $1::uuid", job_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job not found") from exc
        if result.endswith(" 0"):
            raise RepositoryNotFoundError("job not found")

    async def publish_due_jobs(self, *, now: datetime | None = None, limit: int = 100) -> int:
        """Publish approved jobs whose scheduled time has passed. Safe to run repeatedly."""
        current = now or datetime.now(timezone.utc)
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            with due as (
              select id
              from jobs
              where status = 'approved'
                and scheduled_at is not null
                and scheduled_at <= $1
              order by scheduled_at asc
              limit $2
              for update skip locked
            )
            update jobs j
            set is_public = true, scheduled_at = null, updated_at = now()
            from due
            where j.id = due.id
            returning j.id::text as id
            """,
            current,
            max(1, limit),
        )
        return len(rows)

    # ---------- supply / demand ----------

    async def count_jobs(self, *, district: str, block: str | None = None) -> int:
        pool = await self._get_pool()
        count = await pool.fetchval(
            """
            select count(*)
            from jobs
            where district = $1
              and ($2::text is null or block = $2::text)
            """,
            district,
            block,
        )
        return int(count or 0)

    async def count_workers(self, *, district: str, block: str | None = None) -> int:
        pool = await self._get_pool()
        count = await pool.fetchval(
            """
            select count(*)
            from workers
            where district = $1
              and ($2::text is null or block = $2::text)
            """,
            district,
            block,
        )
        return int(count or 0)

    # ---------- workers ----------

    async def get_worker(self, worker_id: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(f"select {_WORKER_COLUMNS} from workers where id = $1::uuid", worker_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._worker_row_to_dict(row) if row else None

    async def list_workers_in_district(self, district: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(f"select {_WORKER_COLUMNS} from workers where district = $1", district)
        return [self._worker_row_to_dict(row) for row in rows]

    # ---------- applications ----------

    async def create_application(self, *, job_id: str, worker_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into applications (job_id, worker_id, status)
                values ($1::uuid, $2::uuid, 'pending')
                returning {_APPLICATION_COLUMNS}
                """,
                job_id,
                worker_id,
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError("worker already applied to this job") from exc
        except (pg_exc.ForeignKeyViolationError, pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job or worker not found") from exc
        return self._application_row_to_dict(row)

    async def get_application(self, application_id: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"select {_APPLICATION_COLUMNS} from applications where id = $1::uuid",
                application_id,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._application_row_to_dict(row) if row else None

    async def list_job_applications(self, job_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(
                f"""
                select {_APPLICATION_COLUMNS}
                from applications
                where job_id = $1::uuid
                order by submitted_at desc
                """,
                job_id,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job not found") from exc
        return [self._application_row_to_dict(row) for row in rows]

    async def decide_application(self, *, application_id: str, status: str) -> tuple[dict[str, Any], int | None]:
        """Move a pending application to accepted/rejected.

        Accepting bumps the worker's completed-job counter by one inside the
        same transaction. Returns the application and the worker's rating
        after the change (``None`` on rejection).
        """
        if status not in APPLICATION_DECISIONS:
            raise RepositoryValidationError("status must be one of: accepted, rejected")
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    existing = await conn.fetchrow(
                        "select status, worker_id::text as worker_id from applications where id = $1::uuid for update",
                        application_id,
                    )
                    if not existing:
                        raise RepositoryNotFoundError("application not found")
                    if existing["status"] != "pending":
                        raise RepositoryConflictError(f"application already {existing['status']}")

                    row = await conn.fetchrow(
                        f"""
                        update applications
                        set status = $2, decided_at = now()
                        where id = $1::uuid
                        returning {_APPLICATION_COLUMNS}
                        """,
                        application_id,
                        status,
                    )
                    rating: int | None = None
                    if status == "accepted":
                        rating = await conn.fetchval(
                            """
                            update workers
                            set rating = rating + 1
                            where id = $1::uuid
                            returning rating
                            """,
                            existing["worker_id"],
                        )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("application not found") from exc
        return self._application_row_to_dict(row), rating

    # ---------- helpers ----------

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("SIGNALX_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _user_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "uid": row["uid"],
            "email": row["email"],
            "display_name": row["display_name"] or "",
            "photo_url": row["photo_url"] or "",
            "bio": row["bio"] or "",
            "company": row["company"] or "",
            "phone": row["phone"] or "",
            "location": row["location"] or "",
            "role": row["role"],
            "status": row["status"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    @staticmethod
    def _job_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "user_id": row["user_id"],
            "title": row["title"],
            "description": row["description"] or "",
            "location": row["location"] or "",
            "district": row["district"],
            "block": row["block"],
            "salary": row["salary"] or "",
            "requirements": row["requirements"] or "",
            "required_skills": list(row["required_skills"] or []),
            "employment_type": row["employment_type"],
            "employer_name": row["employer_name"],
            "contact": row["contact"],
            "is_public": bool(row["is_public"]),
            "moderation_verdict": row["moderation_verdict"],
            "moderation_reason": row["moderation_reason"],
            "status": row["status"],
            "scheduled_at": row["scheduled_at"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    @staticmethod
    def _worker_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "name": row["name"] or "",
            "email": row["email"],
            "phone": row["phone"],
            "district": row["district"],
            "block": row["block"],
            "village": row["village"],
            "skills": list(row["skills"] or []),
            "experience": int(row["experience"] or 0),
            "education": row["education"],
            "rating": int(row["rating"] or 0),
        }

    @staticmethod
    def _application_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "job_id": row["job_id"],
            "worker_id": row["worker_id"],
            "status": row["status"],
            "submitted_at": row["submitted_at"],
            "decided_at": row["decided_at"],
        }

    @staticmethod
    def _coerce_text(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return str(value)

    @staticmethod
    def _coerce_text_list(value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        items: list[str] = []
        for item in value:
            if not isinstance(item, str):
                continue
            stripped = item.strip()
            if stripped:
                items.append(stripped)
        return items


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
