from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from fastapi import Depends
import httpx

from app.core.config import get_settings


class LLMError(Exception):
    """Base error for chat-completion calls."""


class LLMNotConfiguredError(LLMError):
    """Raised when no API key is configured for the provider."""


class LLMRateLimitError(LLMError):
    """Raised on HTTP 429 from the provider."""


class LLMAuthError(LLMError):
    """Raised when the provider rejects the API key."""


class LLMUnavailableError(LLMError):
    """Raised on network failures and unexpected provider responses."""


SIGNALX_SYSTEM_INSTRUCTION = """# SignalX: West Bengal Livelihood Intelligence Engine

You are SignalX, a specialized assistant with deep expertise in West Bengal's
socio-economic ecosystem. Answer general questions helpfully; switch to
West Bengal Intelligence Mode for questions on the state's economy,
livelihoods, migration, agriculture, schemes or districts.

## Geography
23 districts. North Bengal: Darjeeling, Kalimpong, Jalpaiguri, Alipurduar,
Cooch Behar, Uttar Dinajpur, Dakshin Dinajpur, Malda. South Bengal plains:
Kolkata, Howrah, Hooghly, North 24 Parganas, South 24 Parganas, Nadia,
Purba Bardhaman, Paschim Bardhaman, Purba Medinipur, Paschim Medinipur,
Jhargram, Purulia, Bankura, Birbhum, Murshidabad.
341 blocks, 3,358 gram panchayats, 42,000+ villages.

## Regional economies
North Bengal: tea estates, tourism, horticulture, timber.
Industrial belt: services, IT, jute mills, leather, MSMEs.
Sundarbans: salinity-resistant agriculture, prawn/crab, honey, fishing.
Gangetic plains: Aman and Boro rice, vegetables, potatoes, handloom.
Rarh Bengal (Purulia, Bankura): rainfed agriculture, lac, sal leaf,
MGNREGA-dependent, high out-migration.

## Schemes
State: Lakshmir Bhandar, Krishak Bandhu, Bhabishyat Credit Card, Kanyashree,
Karma Sathi, Sufal Bangla, Biswa Bangla.
Central: MGNREGA, PM-KISAN, PM-SVANidhi, PMEGP, Mudra Yojana, NRLM.

## Migration
High out-migration: Purulia (30-40%), Bankura, Murshidabad, Sundarbans,
Paschim Medinipur. Destinations: Kerala, Karnataka, Maharashtra, NCR,
Punjab/Haryana. Peaks: October-December after Aman harvest and March-May
before Kharif.

## Analysis framework
1. Context: geographic unit, economic activities, demographics.
2. Supply-demand: labour availability vs local opportunities.
3. Migration risk: Critical/High/Moderate/Low with push-pull factors.
4. Three-tier intervention: 0-3 months (MGNREGA, social security),
   3-12 months (enterprise, credit), 6-24 months (markets, value chains).

Be specific and actionable, name schemes with eligibility, consider the
season, and be realistic about implementation gaps and social barriers."""


class ChatCompletionClient:
    """Minimal client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(self, *, api_key: str | None, base_url: str, model: str, timeout_seconds: float) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds

    def enabled(self) -> bool:
        return bool(self.api_key)

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        client: httpx.AsyncClient | None = None,
    ) -> str:
        if not self.api_key:
            raise LLMNotConfiguredError("language model API key is not configured")

        body = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        url = f"{self.base_url}/chat/completions"
        try:
            if client is not None:
                response = await client.post(url, json=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as owned_client:
                    response = await owned_client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise LLMUnavailableError("failed to connect to AI service") from exc

        if response.status_code == 429:
            raise LLMRateLimitError("Rate limit reached. Please wait a moment and try again.")
        if response.status_code in {401, 403}:
            raise LLMAuthError("API key issue. Please check the language model API key.")
        if response.status_code != 200:
            raise LLMUnavailableError(f"AI service returned status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise LLMUnavailableError("AI service returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise LLMUnavailableError("AI service returned an unexpected response body")
        return _extract_content(payload)


class LivelihoodAnalyst:
    """Free-form West Bengal livelihood analysis on top of a chat client."""

    def __init__(self, client: ChatCompletionClient) -> None:
        self.client = client

    async def analyze(self, query: str) -> str:
        content = await self.client.complete(
            [
                {"role": "system", "content": SIGNALX_SYSTEM_INSTRUCTION},
                {"role": "user", "content": query},
            ],
            temperature=0.7,
            max_tokens=4096,
        )
        return content or "No response generated"

    async def risk_assessment(
        self,
        district: str,
        block: str | None,
        context: str | None = None,
        *,
        now: datetime | None = None,
    ) -> str:
        return await self.analyze(build_risk_assessment_query(district, block, context, now=now))


def build_risk_assessment_query(
    district: str,
    block: str | None,
    context: str | None = None,
    *,
    now: datetime | None = None,
) -> str:
    current = now or datetime.now(timezone.utc)
    location = f"{district} District, {block} Block, West Bengal" if block else f"{district} District, West Bengal"
    lines = [
        "SignalX Analysis Request:",
        f"- Location: {location}",
        f"- Time Context: Current season ({current.strftime('%B %Y')})",
    ]
    if context:
        lines.append(f"- Additional Context: {context}")
    lines.extend(
        [
            "",
            "Provide a comprehensive livelihood vulnerability analysis with:",
            "1. Risk level and affected demographics",
            "2. Push-pull migration factors",
            "3. Three-tier intervention strategy",
            "4. Relevant schemes with eligibility",
        ]
    )
    return "\n".join(lines)


def strip_code_fences(text: str) -> str:
    return text.replace("```json", "").replace("```", "").strip()


def _extract_content(payload: dict[str, Any]) -> str:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""


@lru_cache
def get_moderation_client() -> ChatCompletionClient:
    settings = get_settings()
    return ChatCompletionClient(
        api_key=settings.moderation_api_key,
        base_url=settings.moderation_base_url,
        model=settings.moderation_model,
        timeout_seconds=settings.llm_timeout_seconds,
    )


@lru_cache
def get_analysis_client() -> ChatCompletionClient:
    settings = get_settings()
    return ChatCompletionClient(
        api_key=settings.analysis_api_key,
        base_url=settings.analysis_base_url,
        model=settings.analysis_model,
        timeout_seconds=settings.llm_timeout_seconds,
    )


def get_livelihood_analyst(client: ChatCompletionClient = Depends(get_analysis_client)) -> LivelihoodAnalyst:
    return LivelihoodAnalyst(client)
