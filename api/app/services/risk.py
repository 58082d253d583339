from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
import logging
import math
from typing import Any, Protocol

from app.schemas.alerts import AlertType, RiskAlertEvent, RiskTier
from app.services.llm import LivelihoodAnalyst, LLMError, strip_code_fences

logger = logging.getLogger(__name__)

# Lower bounds (exclusive upper) of each tier, checked in order.
TIER_THRESHOLDS: tuple[tuple[float, RiskTier], ...] = (
    (0.10, "critical"),
    (0.20, "high"),
    (0.40, "medium"),
)
RISK_TIERS: tuple[RiskTier, ...] = ("low", "medium", "high", "critical")
ESTIMATED_PREFIX = "(AI ESTIMATED DATA)"
DEFAULT_ESTIMATED_SUPPLY = 50
DEFAULT_ESTIMATED_DEMAND = 500
SUBJECT_PREFIXES: dict[str, str] = {
    "critical": "🚨 CRITICAL",
    "high": "⚠️ HIGH RISK",
}
DEFAULT_SUBJECT_PREFIX = "⚡ MEDIUM RISK"


class RationaleFailurePolicy(str, Enum):
    EMPTY = "empty"


class SupplyDemandCounter(Protocol):
    async def count_jobs(self, *, district: str, block: str | None = None) -> int: ...

    async def count_workers(self, *, district: str, block: str | None = None) -> int: ...


def compute_ratio(supply: int, demand: int) -> float:
    if demand <= 0:
        return 0.0
    return supply / demand


def tier_for_ratio(ratio: float) -> RiskTier:
    for upper, tier in TIER_THRESHOLDS:
        if ratio < upper:
            return tier
    return "low"


def alert_type_for_tier(tier: str) -> AlertType:
    if tier == "critical":
        return "high-risk"
    if tier == "high":
        return "low-supply"
    return "stats-change"


def format_ratio_percent(ratio: float) -> str:
    return f"{ratio * 100:.1f}%"


def describe_ratio(ratio: float) -> str:
    if ratio < TIER_THRESHOLDS[0][0]:
        return f"Critical situation. Ratio {format_ratio_percent(ratio)}. Immediate intervention needed."
    return f"Supply-demand imbalance at {format_ratio_percent(ratio)}. Monitor closely."


def should_alert(event: RiskAlertEvent) -> bool:
    # Estimated data with a model-suggested "low" label does not alert either.
    return event.risk_level != "low"


def alert_subject(event: RiskAlertEvent) -> str:
    prefix = SUBJECT_PREFIXES.get(event.risk_level, DEFAULT_SUBJECT_PREFIX)
    location = event.district_name
    if event.block_name:
        location = f"{location} - {event.block_name}"
    return f"{prefix} ALERT: {location}"


@dataclass(slots=True)
class EvaluationOutcome:
    """Result of a supply/demand evaluation.

    ``event`` is ``None`` when the region had no data and no usable estimate.
    """

    event: RiskAlertEvent | None

    @property
    def has_data(self) -> bool:
        return self.event is not None


class RiskEvaluator:
    rationale_failure_policy = RationaleFailurePolicy.EMPTY

    def __init__(self, repository: SupplyDemandCounter, analyst: LivelihoodAnalyst) -> None:
        self.repository = repository
        self.analyst = analyst

    async def evaluate(self, district: str, block: str | None = None) -> EvaluationOutcome:
        supply = await self.repository.count_jobs(district=district, block=block)
        demand = await self.repository.count_workers(district=district, block=block)

        if supply == 0 and demand == 0:
            return EvaluationOutcome(event=await self._estimate(district, block))
        return EvaluationOutcome(event=await self._measure(district, block, supply, demand))

    async def _measure(self, district: str, block: str | None, supply: int, demand: int) -> RiskAlertEvent:
        ratio = compute_ratio(supply, demand)
        tier = tier_for_ratio(ratio)
        rationale = ""
        if tier != "low":
            rationale = await self._rationale(district, supply, demand, tier)
        return RiskAlertEvent(
            alert_type=alert_type_for_tier(tier),
            district_name=district,
            block_name=block,
            supply_count=supply,
            demand_count=demand,
            ratio=ratio,
            risk_level=tier,
            description=describe_ratio(ratio),
            ai_summary=rationale,
            is_estimated=False,
        )

    async def _rationale(self, district: str, supply: int, demand: int, tier: str) -> str:
        query = f"Analyze: {district}. Supply: {supply}, Demand: {demand}. Risk: {tier}. Brief root cause & actions."
        try:
            return await self.analyst.analyze(query)
        except LLMError:
            logger.exception("risk rationale request failed district=%s", district)
            return ""

    async def _estimate(self, district: str, block: str | None) -> RiskAlertEvent | None:
        logger.info("no data for district=%s block=%s; requesting estimates", district, block)
        region = f"{district}, {block}" if block else district
        query = (
            f"Generate realistic ESTIMATED employment statistics for {region}, West Bengal.\n"
            "Return ONLY a valid JSON object (no markdown, no comments):\n"
            "{\n"
            '    "supply": <number_jobs>,\n'
            '    "demand": <number_seekers>,\n'
            '    "risk": "<critical|high|medium|low>",\n'
            '    "analysis": "<short_text_analysis>"\n'
            "}\n"
            "Based on real-world socio-economic data for this region."
        )
        try:
            raw = await self.analyst.analyze(query)
        except LLMError:
            logger.exception("estimate request failed district=%s", district)
            return None

        estimates = parse_estimate(raw)
        if estimates is None:
            logger.warning("estimate response was not valid JSON district=%s", district)
            return None

        supply = _as_count(estimates.get("supply"), default=DEFAULT_ESTIMATED_SUPPLY)
        demand = _as_count(estimates.get("demand"), default=DEFAULT_ESTIMATED_DEMAND)
        label = estimates.get("risk")
        tier: RiskTier = "high"
        if isinstance(label, str) and label.lower() in RISK_TIERS:
            tier = label.lower()  # type: ignore[assignment]
        analysis = estimates.get("analysis")

        return RiskAlertEvent(
            alert_type=alert_type_for_tier(tier),
            district_name=district,
            block_name=block,
            supply_count=supply,
            demand_count=demand,
            ratio=compute_ratio(supply, demand),
            risk_level=tier,
            description=(
                f"Data estimated by AI due to lack of live records. Analysis suggests {tier} migration risk."
            ),
            ai_summary=f"{ESTIMATED_PREFIX} {analysis if isinstance(analysis, str) else ''}".rstrip(),
            is_estimated=True,
        )


def parse_estimate(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _as_count(value: Any, *, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return max(0, int(value))
