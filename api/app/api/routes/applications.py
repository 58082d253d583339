import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.auth import Principal
from app.core.security import get_current_principal
from app.schemas.applications import (
    ApplicationCreateRequest,
    ApplicationDecisionOut,
    ApplicationOut,
    NotifyEmployerRequest,
    StatusEmailRequest,
)
from app.services.notifications import get_application_notifier
from app.services.repository import (
    RepositoryConflictError,
    RepositoryError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
async def create_application(
    payload: ApplicationCreateRequest,
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
) -> ApplicationOut:
    try:
        job = await repository.get_job(payload.job_id)
        if not job:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="job not found")
        if job["status"] != "approved" or not job["is_public"]:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="job is not accepting applications")
        row = await repository.create_application(job_id=payload.job_id, worker_id=payload.worker_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    logger.info("application submitted id=%s job_id=%s by=%s", row["id"], payload.job_id, principal.subject)
    return ApplicationOut(**row)


@router.post("/notify-employer")
async def notify_employer(
    payload: NotifyEmployerRequest,
    _: Principal = Depends(get_current_principal),
    notifier=Depends(get_application_notifier),
) -> dict:
    if not payload.application_id or not payload.job_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing applicationId or jobId")

    try:
        result = await notifier.notify_employer(application_id=payload.application_id, job_id=payload.job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not result.success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send email")
    return {
        "success": True,
        "message": "Application notification sent to employer",
        "messageId": result.message_id,
    }


@router.post("/send-status-email")
async def send_status_email(
    payload: StatusEmailRequest,
    _: Principal = Depends(get_current_principal),
    notifier=Depends(get_application_notifier),
) -> dict:
    if not payload.application_id or not payload.status:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing applicationId or status")

    try:
        result = await notifier.send_status_email(application_id=payload.application_id, status=payload.status)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not result.success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send email")
    return {"success": True, "message": "Email sent successfully", "messageId": result.message_id}


@router.post("/{application_id}/accept", response_model=ApplicationDecisionOut)
async def accept_application(
    application_id: str,
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
    notifier=Depends(get_application_notifier),
) -> ApplicationDecisionOut:
    return await _decide(repository, notifier, principal, application_id=application_id, decision="accepted")


@router.post("/{application_id}/reject", response_model=ApplicationDecisionOut)
async def reject_application(
    application_id: str,
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
    notifier=Depends(get_application_notifier),
) -> ApplicationDecisionOut:
    return await _decide(repository, notifier, principal, application_id=application_id, decision="rejected")


async def _decide(repository, notifier, principal: Principal, *, application_id: str, decision: str) -> ApplicationDecisionOut:
    try:
        principal.require_scopes({"applications:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        application = await repository.get_application(application_id)
        if not application:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="application not found")
        job = await repository.get_job(application["job_id"])
        if not job:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="job not found")
        if job["user_id"] != principal.subject and not principal.is_admin:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="not the owner of this job")
        row, rating = await repository.decide_application(application_id=application_id, status=decision)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    logger.info("application decided id=%s status=%s rating=%s", application_id, decision, rating)

    # The decision is committed; the worker email is best-effort.
    email_sent = False
    try:
        result = await notifier.send_status_email(application_id=application_id, status=decision)
        email_sent = result.success
        if not result.success:
            logger.warning("status email not delivered application_id=%s error=%s", application_id, result.error)
    except RepositoryError:
        logger.exception("status email skipped application_id=%s", application_id)

    return ApplicationDecisionOut(application=ApplicationOut(**row), worker_rating=rating, email_sent=email_sent)
