from datetime import datetime
from typing import Literal

from pydantic import Field

from app.schemas.common import CamelModel

JobStatus = Literal["pending", "approved", "rejected"]
ModerationVerdict = Literal["auto-approved", "flagged", "manual", "rejected"]
EmploymentType = Literal["full-time", "part-time", "daily-wage", "seasonal", "contract"]


class JobOut(CamelModel):
    id: str
    user_id: str
    title: str
    description: str = ""
    location: str = ""
    district: str | None = None
    block: str | None = None
    salary: str = ""
    requirements: str = ""
    required_skills: list[str] = Field(default_factory=list)
    employment_type: EmploymentType | None = None
    employer_name: str | None = None
    contact: str | None = None
    is_public: bool = False
    moderation_verdict: ModerationVerdict = "manual"
    moderation_reason: str | None = None
    status: JobStatus = "pending"
    scheduled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class JobCreateRequest(CamelModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    location: str = ""
    district: str | None = None
    block: str | None = None
    salary: str = ""
    requirements: str = ""
    required_skills: list[str] = Field(default_factory=list)
    employment_type: EmploymentType | None = None
    employer_name: str | None = None
    contact: str | None = None
    scheduled_at: datetime | None = None


class JobUpdateRequest(CamelModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    location: str | None = None
    district: str | None = None
    block: str | None = None
    salary: str | None = None
    requirements: str | None = None
    required_skills: list[str] | None = None
    employment_type: EmploymentType | None = None
    employer_name: str | None = None
    contact: str | None = None
    scheduled_at: datetime | None = None


class JobVisibilityPatchRequest(CamelModel):
    is_public: bool


class ModerationOut(CamelModel):
    safe: bool
    reason: str = ""


class JobCreateOut(CamelModel):
    success: bool = True
    flagged: bool
    job: JobOut
    moderation: ModerationOut


class JobAlertData(CamelModel):
    title: str = ""
    district: str | None = None
    location: str | None = None
    salary: str | None = None
    required_skills: list[str] = Field(default_factory=list)
    employer_name: str | None = None


class SendJobAlertsRequest(CamelModel):
    job_data: JobAlertData | None = None
    job_id: str | None = None
