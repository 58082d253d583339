from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi import Depends

from app.core.config import Settings, get_settings
from app.services.email_templates import render_application_status, render_job_alert, render_new_application
from app.services.mailer import BulkSendResult, Mailer, SendResult, get_mailer
from app.services.repository import RepositoryNotFoundError, RepositoryValidationError, get_repository

logger = logging.getLogger(__name__)

STATUS_SUBJECTS = {
    "accepted": "আপনার আবেদন গৃহীত হয়েছে - Application Accepted",
    "rejected": "আবেদন সম্পর্কে আপডেট - Application Update",
}
STATUS_MESSAGES = {
    "accepted": "Congratulations! Your application has been accepted. The employer will contact you soon.",
    "rejected": (
        "Thank you for your interest. We found a candidate with different requirements. "
        "Please check our other job listings."
    ),
}


def skills_match(worker_skills: Iterable[str], job_skills: Iterable[str]) -> bool:
    """True when any pair of skills contains the other, ignoring case."""
    job_lowered = [skill.lower() for skill in job_skills if skill]
    for skill in worker_skills:
        if not skill:
            continue
        lowered = skill.lower()
        if any(lowered in job_skill or job_skill in lowered for job_skill in job_lowered):
            return True
    return False


def matching_worker_emails(workers: Iterable[dict[str, Any]], job_skills: list[str]) -> list[str]:
    emails: list[str] = []
    for worker in workers:
        email = worker.get("email")
        if not email:
            continue
        if skills_match(worker.get("skills") or [], job_skills):
            emails.append(email)
    return emails


class ApplicationNotifier:
    """Builds and sends the emails around the application lifecycle.

    Lookups raise ``RepositoryNotFoundError`` / ``RepositoryValidationError``;
    delivery problems come back as failed ``SendResult`` values.
    """

    def __init__(self, repository: Any, mailer: Mailer, *, dashboard_url: str) -> None:
        self.repository = repository
        self.mailer = mailer
        self.dashboard_url = dashboard_url

    async def notify_employer(self, *, application_id: str, job_id: str) -> SendResult:
        application = await self.repository.get_application(application_id)
        if not application:
            raise RepositoryNotFoundError("Application not found")
        worker = await self.repository.get_worker(application["worker_id"])
        if not worker:
            raise RepositoryNotFoundError("Worker not found")
        job = await self.repository.get_job(job_id)
        if not job:
            raise RepositoryNotFoundError("Job not found")
        employer = await self.repository.get_user(job["user_id"])
        if not employer:
            raise RepositoryNotFoundError("Employer not found")
        if not employer.get("email"):
            raise RepositoryValidationError("Employer has no email address")

        html = render_new_application(
            employer_name=employer.get("display_name") or employer["email"],
            worker_name=worker.get("name") or "",
            worker_phone=worker.get("phone"),
            worker_email=worker.get("email"),
            job_title=job["title"],
            worker_skills=worker.get("skills") or [],
            worker_experience=worker.get("experience") or 0,
            worker_education=worker.get("education") or "Not specified",
            application_id=application_id,
            dashboard_url=self.dashboard_url,
        )
        return await self.mailer.send(
            to=employer["email"],
            subject=f"📋 New Application: {worker.get('name') or 'A worker'} applied for {job['title']}",
            html=html,
        )

    async def send_status_email(self, *, application_id: str, status: str) -> SendResult:
        application = await self.repository.get_application(application_id)
        if not application:
            raise RepositoryNotFoundError("Application not found")
        worker = await self.repository.get_worker(application["worker_id"])
        job = await self.repository.get_job(application["job_id"])
        if not worker or not job:
            raise RepositoryNotFoundError("Worker or job not found")
        if not worker.get("email"):
            raise RepositoryValidationError("Worker has no email address")

        accepted = status == "accepted"
        html = render_application_status(
            worker_name=worker.get("name") or "",
            job_title=job["title"],
            employer_name=job.get("employer_name") or "Employer",
            status=status,
            message=STATUS_MESSAGES["accepted" if accepted else "rejected"],
            employer_contact=job.get("contact") if accepted else None,
            dashboard_url=self.dashboard_url,
        )
        return await self.mailer.send(
            to=worker["email"],
            subject=STATUS_SUBJECTS["accepted" if accepted else "rejected"],
            html=html,
        )

    async def send_job_alerts(self, *, job_id: str, job_data: dict[str, Any]) -> BulkSendResult:
        district = job_data.get("district") or job_data.get("location")
        workers = await self.repository.list_workers_in_district(district) if district else []
        skills = job_data.get("required_skills") or []
        recipients = matching_worker_emails(workers, skills)
        if not recipients:
            return BulkSendResult(successful=0, failed=0)

        html = render_job_alert(
            worker_name="Worker",
            job_title=job_data.get("title") or "",
            employer_name=job_data.get("employer_name") or "Employer",
            location=job_data.get("location") or district or "",
            salary=job_data.get("salary") or "Negotiable",
            skills=skills,
            job_id=job_id,
            dashboard_url=self.dashboard_url,
        )
        return await self.mailer.send_bulk(
            recipients=recipients,
            subject=f"নতুন কাজের সুযোগ - New Job: {job_data.get('title') or ''}",
            html=html,
        )


def get_application_notifier(
    repository=Depends(get_repository),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
) -> ApplicationNotifier:
    return ApplicationNotifier(repository, mailer, dashboard_url=settings.app_url)
