import asyncio

import pytest

from app.schemas.alerts import RiskAlertEvent
from app.services.llm import LivelihoodAnalyst, LLMUnavailableError
from app.services.risk import (
    ESTIMATED_PREFIX,
    RiskEvaluator,
    alert_subject,
    compute_ratio,
    parse_estimate,
    should_alert,
    tier_for_ratio,
)

from conftest import FakeChatClient, FakeRepository


@pytest.mark.parametrize(
    ("ratio", "tier"),
    [
        (0.0, "critical"),
        (0.0999, "critical"),
        (0.10, "high"),
        (0.1999, "high"),
        (0.20, "medium"),
        (0.3999, "medium"),
        (0.40, "low"),
        (2.5, "low"),
    ],
)
def test_tier_boundaries(ratio: float, tier: str) -> None:
    assert tier_for_ratio(ratio) == tier


def test_zero_demand_counts_as_zero_ratio() -> None:
    assert compute_ratio(12, 0) == 0.0
    assert tier_for_ratio(compute_ratio(12, 0)) == "critical"


def test_alert_subject_includes_block_when_present() -> None:
    event = RiskAlertEvent(district_name="Purulia", block_name="Jhalda", risk_level="critical")
    assert alert_subject(event) == "🚨 CRITICAL ALERT: Purulia - Jhalda"

    event = RiskAlertEvent(district_name="Bankura", risk_level="medium")
    assert alert_subject(event) == "⚡ MEDIUM RISK ALERT: Bankura"


def test_low_tier_never_alerts_even_when_estimated() -> None:
    assert not should_alert(RiskAlertEvent(district_name="Nadia", risk_level="low"))
    assert not should_alert(RiskAlertEvent(district_name="Nadia", risk_level="low", is_estimated=True))
    assert should_alert(RiskAlertEvent(district_name="Nadia", risk_level="medium"))


def test_parse_estimate_strips_code_fences() -> None:
    raw = '```json\n{"supply": 10, "demand": 90, "risk": "high", "analysis": "Seasonal gap"}\n```'
    assert parse_estimate(raw) == {"supply": 10, "demand": 90, "risk": "high", "analysis": "Seasonal gap"}
    assert parse_estimate("not json") is None
    assert parse_estimate("[1, 2]") is None


def _evaluate(repo: FakeRepository, client: FakeChatClient, district: str, block: str | None = None):
    evaluator = RiskEvaluator(repo, LivelihoodAnalyst(client))
    return asyncio.run(evaluator.evaluate(district, block))


def test_measured_critical_ratio_requests_rationale() -> None:
    repo = FakeRepository()
    repo.job_counts[("Purulia", "Jhalda")] = 45
    repo.worker_counts[("Purulia", "Jhalda")] = 523
    client = FakeChatClient("Drought-driven out-migration; expand MGNREGA.")

    outcome = _evaluate(repo, client, "Purulia", "Jhalda")

    event = outcome.event
    assert outcome.has_data
    assert event.risk_level == "critical"
    assert event.alert_type == "high-risk"
    assert event.ai_summary == "Drought-driven out-migration; expand MGNREGA."
    assert not event.is_estimated
    assert "8.6%" in event.description
    assert len(client.calls) == 1


def test_healthy_ratio_skips_rationale() -> None:
    repo = FakeRepository()
    repo.job_counts[("Hooghly", None)] = 80
    repo.worker_counts[("Hooghly", None)] = 100
    client = FakeChatClient()

    event = _evaluate(repo, client, "Hooghly").event

    assert event.risk_level == "low"
    assert event.ai_summary == ""
    assert client.calls == []


def test_rationale_failure_yields_empty_summary() -> None:
    repo = FakeRepository()
    repo.job_counts[("Bankura", None)] = 15
    repo.worker_counts[("Bankura", None)] = 100
    client = FakeChatClient(LLMUnavailableError("down"))

    event = _evaluate(repo, client, "Bankura").event

    assert event.risk_level == "high"
    assert event.ai_summary == ""


def test_no_data_falls_back_to_estimate() -> None:
    client = FakeChatClient('{"supply": 20, "demand": 400, "risk": "Critical", "analysis": "Few local jobs"}')

    event = _evaluate(FakeRepository(), client, "Alipurduar").event

    assert event.is_estimated
    assert event.risk_level == "critical"
    assert event.supply_count == 20
    assert event.demand_count == 400
    assert event.ai_summary.startswith(ESTIMATED_PREFIX)


def test_estimate_with_unknown_label_defaults_to_high_and_missing_counts() -> None:
    client = FakeChatClient('{"risk": "severe"}')

    event = _evaluate(FakeRepository(), client, "Jhargram").event

    assert event.risk_level == "high"
    assert event.supply_count == 50
    assert event.demand_count == 500


def test_estimate_failure_is_no_data() -> None:
    assert _evaluate(FakeRepository(), FakeChatClient("I cannot help"), "Malda").event is None
    assert _evaluate(FakeRepository(), FakeChatClient(LLMUnavailableError("down")), "Malda").event is None


@pytest.mark.parametrize(
    "reply",
    [
        '{"supply": 1e400, "demand": NaN, "risk": "high", "analysis": "Seasonal gap"}',
        '{"supply": Infinity, "demand": -Infinity, "risk": "high", "analysis": "Seasonal gap"}',
    ],
)
def test_non_finite_estimates_fall_back_to_defaults(reply: str) -> None:
    event = _evaluate(FakeRepository(), FakeChatClient(reply), "Purulia").event

    assert event.is_estimated
    assert event.supply_count == 50
    assert event.demand_count == 500
    assert event.risk_level == "high"
