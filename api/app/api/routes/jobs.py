from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.auth import Principal
from app.core.security import get_current_principal
from app.schemas.applications import ApplicationWithWorkerOut, WorkerOut
from app.schemas.jobs import (
    JobCreateOut,
    JobCreateRequest,
    JobOut,
    JobUpdateRequest,
    JobVisibilityPatchRequest,
    ModerationOut,
    SendJobAlertsRequest,
)
from app.services.moderation import get_job_classifier, place_job
from app.services.notifications import get_application_notifier
from app.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _require(principal: Principal, scopes: set[str]) -> None:
    try:
        principal.require_scopes(scopes)
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc


def _is_scheduled(scheduled_at: datetime | None) -> bool:
    if scheduled_at is None:
        return False
    if scheduled_at.tzinfo is None:
        scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)
    return scheduled_at > datetime.now(timezone.utc)


async def _load_owned_job(repository, job_id: str, principal: Principal) -> dict:
    try:
        job = await repository.get_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="job not found")
    if job["user_id"] != principal.subject and not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="not the owner of this job")
    return job


@router.post("", response_model=JobCreateOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreateRequest,
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
    classifier=Depends(get_job_classifier),
) -> JobCreateOut:
    _require(principal, {"jobs:write"})

    verdict = await classifier.classify(payload.title, payload.description)
    placement = place_job(verdict, scheduled=_is_scheduled(payload.scheduled_at))
    try:
        row = await repository.create_job(
            user_id=principal.subject,
            fields=payload.model_dump(),
            moderation_verdict=placement.moderation_verdict,
            moderation_reason=verdict.reason or None,
            status=placement.status,
            is_public=placement.is_public,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    logger.info(
        "job created id=%s verdict=%s status=%s public=%s",
        row["id"],
        placement.moderation_verdict,
        placement.status,
        placement.is_public,
    )
    return JobCreateOut(
        flagged=not verdict.safe,
        job=JobOut(**row),
        moderation=ModerationOut(safe=verdict.safe, reason=verdict.reason),
    )


@router.get("/public", response_model=list[JobOut])
async def list_public_jobs(
    repository=Depends(get_repository),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[JobOut]:
    try:
        rows = await repository.list_jobs(public_only=True, limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobOut(**row) for row in rows]


@router.get("/mine", response_model=list[JobOut])
async def list_my_jobs(
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[JobOut]:
    _require(principal, {"jobs:read"})
    try:
        rows = await repository.list_jobs(user_id=principal.subject, limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobOut(**row) for row in rows]


@router.post("/send-alerts")
async def send_job_alerts(
    payload: SendJobAlertsRequest,
    principal: Principal = Depends(get_current_principal),
    notifier=Depends(get_application_notifier),
) -> dict:
    _require(principal, {"jobs:write"})
    if payload.job_data is None or not payload.job_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing job data or jobId")

    try:
        result = await notifier.send_job_alerts(job_id=payload.job_id, job_data=payload.job_data.model_dump())
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    logger.info("job alerts job_id=%s sent=%s failed=%s", payload.job_id, result.successful, result.failed)
    if not result.results:
        message = "No matching workers found"
    else:
        message = f"Job alerts sent to {result.successful} workers"
    return {
        "success": True,
        "message": message,
        "emailsSent": result.successful,
        "emailsFailed": result.failed,
    }


@router.get("/{job_id}", response_model=JobOut)
async def get_job(
    job_id: str,
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
) -> JobOut:
    try:
        job = await repository.get_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="job not found")

    visible = job["status"] == "approved" and job["is_public"]
    if not visible and job["user_id"] != principal.subject and not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="job not found")
    return JobOut(**job)


@router.patch("/{job_id}", response_model=JobOut)
async def update_job(
    job_id: str,
    payload: JobUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
    classifier=Depends(get_job_classifier),
) -> JobOut:
    _require(principal, {"jobs:write"})
    job = await _load_owned_job(repository, job_id, principal)

    fields = payload.model_dump(exclude_unset=True)
    content_changed = any(
        key in fields and fields[key] != job.get(key) for key in ("title", "description")
    )
    if content_changed:
        verdict = await classifier.classify(
            fields.get("title", job["title"]),
            fields.get("description", job["description"]),
        )
        scheduled_at = fields["scheduled_at"] if "scheduled_at" in fields else job.get("scheduled_at")
        placement = place_job(verdict, scheduled=_is_scheduled(scheduled_at))
        fields.update(
            moderation_verdict=placement.moderation_verdict,
            moderation_reason=verdict.reason or None,
            status=placement.status,
            is_public=placement.is_public,
        )
        logger.info("job re-moderated id=%s verdict=%s", job_id, placement.moderation_verdict)

    try:
        row = await repository.update_job(job_id=job_id, fields=fields)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobOut(**row)


@router.patch("/{job_id}/visibility", response_model=JobOut)
async def patch_job_visibility(
    job_id: str,
    payload: JobVisibilityPatchRequest,
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
) -> JobOut:
    _require(principal, {"jobs:write"})
    job = await _load_owned_job(repository, job_id, principal)
    if payload.is_public and job["status"] != "approved":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="only approved jobs can be made public")

    try:
        row = await repository.update_job(job_id=job_id, fields={"is_public": payload.is_public})
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobOut(**row)


@router.get("/{job_id}/applications", response_model=list[ApplicationWithWorkerOut])
async def list_job_applications(
    job_id: str,
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
) -> list[ApplicationWithWorkerOut]:
    _require(principal, {"applications:write"})
    await _load_owned_job(repository, job_id, principal)

    try:
        rows = await repository.list_job_applications(job_id)
        items: list[ApplicationWithWorkerOut] = []
        for row in rows:
            worker = await repository.get_worker(row["worker_id"])
            items.append(ApplicationWithWorkerOut(**row, worker=WorkerOut(**worker) if worker else None))
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return items
