from datetime import datetime
from typing import Literal

from pydantic import Field

from app.schemas.common import CamelModel

ApplicationStatus = Literal["pending", "accepted", "rejected"]
ApplicationDecision = Literal["accepted", "rejected"]


class ApplicationOut(CamelModel):
    id: str
    job_id: str
    worker_id: str
    status: ApplicationStatus = "pending"
    submitted_at: datetime
    decided_at: datetime | None = None


class WorkerOut(CamelModel):
    id: str
    name: str = ""
    email: str | None = None
    phone: str | None = None
    district: str | None = None
    block: str | None = None
    village: str | None = None
    skills: list[str] = Field(default_factory=list)
    experience: int = 0
    education: str | None = None
    rating: int = 0


class ApplicationWithWorkerOut(ApplicationOut):
    worker: WorkerOut | None = None


class ApplicationCreateRequest(CamelModel):
    job_id: str
    worker_id: str


class NotifyEmployerRequest(CamelModel):
    application_id: str | None = None
    job_id: str | None = None


class StatusEmailRequest(CamelModel):
    application_id: str | None = None
    status: ApplicationDecision | None = None


class ApplicationDecisionOut(CamelModel):
    success: bool = True
    application: ApplicationOut
    worker_rating: int | None = None
    email_sent: bool
