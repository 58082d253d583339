from typing import Literal

from app.schemas.common import CamelModel

ReviewDecision = Literal["approved", "rejected"]


class JobReviewRequest(CamelModel):
    status: ReviewDecision
    reason: str | None = None


class PublishDueOut(CamelModel):
    published: int


class AnalyzeRequest(CamelModel):
    query: str | None = None


class RiskAssessmentRequest(CamelModel):
    district_name: str | None = None
    block_name: str | None = None
    context: str | None = None


class AnalysisOut(CamelModel):
    success: bool = True
    result: str
