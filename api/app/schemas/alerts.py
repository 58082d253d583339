from typing import Literal

from pydantic import Field

from app.schemas.common import CamelModel

RiskTier = Literal["low", "medium", "high", "critical"]
AlertType = Literal["high-risk", "low-supply", "stats-change"]


class RiskAlertEvent(CamelModel):
    alert_type: AlertType = "stats-change"
    district_name: str
    block_name: str | None = None
    supply_count: int = 0
    demand_count: int = 0
    ratio: float = 0.0
    risk_level: RiskTier = "low"
    description: str = ""
    ai_summary: str = ""
    is_estimated: bool = False


class SupplyDemandCheckRequest(CamelModel):
    district_name: str | None = None
    block_name: str | None = None
    dry_run: bool = False


class BulkAlertRequest(CamelModel):
    reports: list[RiskAlertEvent] | None = Field(default=None)
