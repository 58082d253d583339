from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
import logging

from fastapi import Depends

from app.services.llm import ChatCompletionClient, LLMError, get_moderation_client, strip_code_fences

logger = logging.getLogger(__name__)

MODERATION_SYSTEM_PROMPT = """You are a job moderation AI for SignalX, a livelihood platform in West Bengal.

REJECT jobs that contain:
- Illegal activities (drugs, weapons, etc.)
- Scams or pyramid schemes ("earn ₹50,000/week from home")
- Hate speech or discrimination
- Adult/explicit content
- Extremely vague offers with no real job details

APPROVE legitimate jobs like:
- Agriculture, construction, driving, tailoring, etc.
- Clear job descriptions with location and salary
- MGNREGA, government schemes, MSMEs
- Local businesses hiring workers

Respond ONLY with JSON: { "safe": true/false, "reason": "brief explanation" }"""

UNAVAILABLE_REASON = "Auto-moderation unavailable. Pending admin review."
FAILED_REASON = "Auto-moderation failed. Pending admin review."
UNSAFE_MARKERS = ("unsafe", "reject", "flag")


class ModerationFailurePolicy(str, Enum):
    CONSERVATIVE = "conservative"


class VerdictSource(str, Enum):
    MODEL = "model"
    HEURISTIC = "heuristic"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class Verdict:
    safe: bool
    reason: str
    source: VerdictSource = VerdictSource.MODEL


@dataclass(slots=True, frozen=True)
class JobPlacement:
    moderation_verdict: str
    status: str
    is_public: bool


class JobSafetyClassifier:
    """Screens job postings before publication.

    The classifier never raises: a missing credential or a failed call yields
    an unsafe verdict so the posting lands in the admin review queue.
    """

    failure_policy = ModerationFailurePolicy.CONSERVATIVE

    def __init__(self, client: ChatCompletionClient) -> None:
        self.client = client

    async def classify(self, title: str, description: str) -> Verdict:
        if not self.client.enabled():
            logger.warning("moderation API key missing; defaulting to manual review")
            return Verdict(safe=False, reason=UNAVAILABLE_REASON, source=VerdictSource.UNAVAILABLE)

        try:
            output = await self.client.complete(
                [
                    {"role": "system", "content": MODERATION_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": f'Moderate this job:\nTitle: "{title}"\nDescription: "{description}"',
                    },
                ],
                temperature=0.2,
                max_tokens=150,
            )
        except LLMError:
            logger.exception("moderation check failed")
            return Verdict(safe=False, reason=FAILED_REASON, source=VerdictSource.FAILED)

        verdict = parse_moderation_output(output)
        logger.info("moderation verdict safe=%s source=%s", verdict.safe, verdict.source.value)
        return verdict


def parse_moderation_output(output: str) -> Verdict:
    cleaned = strip_code_fences(output)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        # Weak secondary heuristic over raw text.
        lowered = cleaned.lower()
        safe = not any(marker in lowered for marker in UNSAFE_MARKERS)
        return Verdict(safe=safe, reason=cleaned, source=VerdictSource.HEURISTIC)

    # Any decoded value other than an object with safe=true is unsafe.
    if not isinstance(parsed, dict):
        return Verdict(safe=False, reason="", source=VerdictSource.MODEL)
    reason = parsed.get("reason")
    return Verdict(
        safe=parsed.get("safe") is True,
        reason=reason if isinstance(reason, str) else "",
        source=VerdictSource.MODEL,
    )


def place_job(verdict: Verdict, *, scheduled: bool = False) -> JobPlacement:
    """Map a verdict to the initial review state of a new posting."""
    if verdict.safe:
        return JobPlacement(moderation_verdict="auto-approved", status="approved", is_public=not scheduled)
    if verdict.source in {VerdictSource.UNAVAILABLE, VerdictSource.FAILED}:
        return JobPlacement(moderation_verdict="manual", status="pending", is_public=False)
    return JobPlacement(moderation_verdict="flagged", status="pending", is_public=False)


def get_job_classifier(client: ChatCompletionClient = Depends(get_moderation_client)) -> JobSafetyClassifier:
    return JobSafetyClassifier(client)
