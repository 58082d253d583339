from typing import get_args

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.config import Settings, get_settings
from app.core.security import get_admin_principal
from app.schemas.alerts import RiskAlertEvent
from app.schemas.email import TestEmailRequest, TestEmailType
from app.services.email_templates import render_admin_alert, render_application_status, render_job_alert
from app.services.mailer import Mailer, get_mailer

router = APIRouter(dependencies=[Depends(get_admin_principal)])

SAMPLE_WORKER = "রাম কুমার"
SAMPLE_JOB_TITLE = "ড্রাইভার (Driver)"
SAMPLE_EMPLOYER = "ABC Transport Company"
SAMPLE_ALERT = RiskAlertEvent(
    alert_type="high-risk",
    district_name="Purulia",
    block_name="Jhalda",
    supply_count=45,
    demand_count=523,
    ratio=45 / 523,
    risk_level="critical",
    description=(
        "Supply-demand ratio has fallen to 8.6%, indicating severe employment shortage. "
        "Historical migration data shows 40% out-migration from this block. Immediate intervention recommended."
    ),
)


@router.get("")
async def check_email_service(mailer: Mailer = Depends(get_mailer)) -> dict:
    if not await mailer.verify():
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Email service not configured properly",
        )
    return {"status": "ready", "message": "Email service is configured and ready"}


@router.post("")
async def send_test_email(
    payload: TestEmailRequest,
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
) -> dict:
    if not payload.to:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Recipient email (to) is required")

    dashboard_url = settings.app_url
    if payload.type == "job-alert":
        result = await mailer.send(
            to=payload.to,
            subject="নতুন কাজের সুযোগ - New Job Opportunity: Driver",
            html=render_job_alert(
                worker_name=SAMPLE_WORKER,
                job_title=SAMPLE_JOB_TITLE,
                employer_name=SAMPLE_EMPLOYER,
                location="Kolkata, West Bengal",
                salary="15,000 - 18,000",
                skills=["Driving", "License"],
                job_id="test-123",
                dashboard_url=dashboard_url,
            ),
        )
    elif payload.type in {"application-accepted", "application-rejected"}:
        accepted = payload.type == "application-accepted"
        result = await mailer.send(
            to=payload.to,
            subject=(
                "আপনার আবেদন গৃহীত হয়েছে - Application Accepted"
                if accepted
                else "আবেদন সম্পর্কে আপডেট - Application Update"
            ),
            html=render_application_status(
                worker_name=SAMPLE_WORKER,
                job_title=SAMPLE_JOB_TITLE,
                employer_name=SAMPLE_EMPLOYER,
                status="accepted" if accepted else "rejected",
                message=(
                    "Congratulations! Please visit our office tomorrow at 10 AM."
                    if accepted
                    else "Thank you for your interest. We found a candidate with more experience."
                ),
                employer_contact="+91 98765 43210" if accepted else None,
                dashboard_url=dashboard_url,
            ),
        )
    elif payload.type == "admin-alert":
        result = await mailer.send_admin_alert(
            subject="🚨 HIGH RISK ALERT: Purulia District - Critical Supply Shortage",
            html=render_admin_alert(SAMPLE_ALERT, dashboard_url=dashboard_url),
        )
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid email type. Use: {', '.join(get_args(TestEmailType))}",
        )

    if not result.success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send email")
    return {
        "success": True,
        "message": f"Test email sent successfully to {payload.to}",
        "messageId": result.message_id,
    }
