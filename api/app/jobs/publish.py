from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class DueJobPublisher(Protocol):
    async def publish_due_jobs(self, *, now: datetime | None = None, limit: int = 100) -> int: ...


async def publish_due(repository: DueJobPublisher, *, now: datetime | None = None, limit: int = 100) -> int:
    """Publish approved postings whose scheduled time has passed. Running it twice publishes nothing new."""
    current = now or datetime.now(timezone.utc)
    published = await repository.publish_due_jobs(now=current, limit=limit)
    if published:
        logger.info("published scheduled jobs: %s", published)
    return published


def next_backoff(current: float, *, max_backoff: float, jitter: float) -> float:
    return min(current * (2.0 + jitter), max_backoff)
