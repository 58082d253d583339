import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.security import get_admin_principal
from app.jobs.publish import publish_due
from app.schemas.admin import AnalysisOut, AnalyzeRequest, JobReviewRequest, PublishDueOut, RiskAssessmentRequest
from app.schemas.alerts import BulkAlertRequest, SupplyDemandCheckRequest
from app.schemas.jobs import JobOut, JobStatus
from app.schemas.users import UserOut, UserStatus
from app.services.alerts import get_alert_dispatcher
from app.services.email_templates import count_high_risk
from app.services.llm import (
    LLMAuthError,
    LLMError,
    LLMNotConfiguredError,
    LLMRateLimitError,
    get_livelihood_analyst,
)
from app.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)
from app.services.risk import RiskEvaluator, format_ratio_percent, should_alert

router = APIRouter(dependencies=[Depends(get_admin_principal)])
logger = logging.getLogger(__name__)


@router.post("/check-supply-demand")
async def check_supply_demand(
    payload: SupplyDemandCheckRequest,
    repository=Depends(get_repository),
    analyst=Depends(get_livelihood_analyst),
    dispatcher=Depends(get_alert_dispatcher),
) -> dict:
    if not payload.district_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing district name")

    evaluator = RiskEvaluator(repository, analyst)
    try:
        outcome = await evaluator.evaluate(payload.district_name, payload.block_name)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    event = outcome.event
    if event is None:
        return {"success": True, "message": "No data and AI failed"}

    if not should_alert(event):
        return {
            "success": True,
            "message": "No alert needed - healthy ratio",
            "ratio": format_ratio_percent(event.ratio),
            "riskLevel": event.risk_level,
            "isEstimated": event.is_estimated,
        }

    if payload.dry_run:
        return {"success": True, "message": "Dry run complete", "data": event.to_wire()}

    result = await dispatcher.send_single(event)
    if not result.success:
        logger.warning("admin alert not delivered district=%s error=%s", event.district_name, result.error)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send admin alert")

    return {
        "success": True,
        "message": "Admin alert sent successfully",
        "riskLevel": event.risk_level,
        "isEstimated": event.is_estimated,
        "messageId": result.message_id,
    }


@router.post("/send-bulk-alert")
async def send_bulk_alert(payload: BulkAlertRequest, dispatcher=Depends(get_alert_dispatcher)) -> dict:
    if not payload.reports:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No reports data provided")

    result = await dispatcher.send_bulk(payload.reports)
    if result.failed:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send bulk email")

    return {
        "success": True,
        "message": "Bulk report sent",
        "reportCount": len(payload.reports),
        "highRiskCount": count_high_risk(payload.reports),
    }


@router.get("/users", response_model=list[UserOut])
async def list_users(
    repository=Depends(get_repository),
    user_status: UserStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[UserOut]:
    try:
        rows = await repository.list_users(status=user_status, limit=limit, offset=offset)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [UserOut(**row) for row in rows]


@router.post("/users/{uid}/approve", response_model=UserOut)
async def approve_user(uid: str, repository=Depends(get_repository)) -> UserOut:
    return await _set_user_status(repository, uid=uid, target="approved")


@router.post("/users/{uid}/reject", response_model=UserOut)
async def reject_user(uid: str, repository=Depends(get_repository)) -> UserOut:
    return await _set_user_status(repository, uid=uid, target="rejected")


async def _set_user_status(repository, *, uid: str, target: str) -> UserOut:
    try:
        row = await repository.set_user_status(uid=uid, status=target)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    logger.info("user status changed uid=%s status=%s", uid, target)
    return UserOut(**row)


@router.get("/jobs", response_model=list[JobOut])
async def list_jobs(
    repository=Depends(get_repository),
    job_status: JobStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[JobOut]:
    try:
        rows = await repository.list_jobs(status=job_status, limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobOut(**row) for row in rows]


@router.post("/jobs/publish-due", response_model=PublishDueOut)
async def publish_due_jobs(
    repository=Depends(get_repository),
    limit: int = Query(default=100, ge=1, le=1000),
) -> PublishDueOut:
    try:
        published = await publish_due(repository, limit=limit)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return PublishDueOut(published=published)


@router.post("/jobs/{job_id}/review", response_model=JobOut)
async def review_job(job_id: str, payload: JobReviewRequest, repository=Depends(get_repository)) -> JobOut:
    try:
        row = await repository.set_job_review_status(job_id=job_id, status=payload.status, reason=payload.reason)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobOut(**row)


@router.delete("/jobs/{job_id}")
async def delete_job(job_id: str, repository=Depends(get_repository)) -> dict:
    try:
        await repository.delete_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"success": True}


@router.post("/ai/analyze", response_model=AnalysisOut)
async def analyze(payload: AnalyzeRequest, analyst=Depends(get_livelihood_analyst)) -> AnalysisOut:
    query = (payload.query or "").strip()
    if not query:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing query")
    try:
        result = await analyst.analyze(query)
    except LLMError as exc:
        raise _llm_http_error(exc) from exc
    return AnalysisOut(result=result)


@router.post("/ai/risk-assessment", response_model=AnalysisOut)
async def risk_assessment(payload: RiskAssessmentRequest, analyst=Depends(get_livelihood_analyst)) -> AnalysisOut:
    if not payload.district_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing district name")
    try:
        result = await analyst.risk_assessment(payload.district_name, payload.block_name, payload.context)
    except LLMError as exc:
        raise _llm_http_error(exc) from exc
    return AnalysisOut(result=result)


def _llm_http_error(exc: LLMError) -> HTTPException:
    if isinstance(exc, LLMRateLimitError):
        return HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(exc))
    if isinstance(exc, (LLMNotConfiguredError, LLMAuthError)):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to analyze. Please try again.")
