from __future__ import annotations

import asyncio
import logging
import random

from opentelemetry import trace

from app.core.config import get_settings
from app.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from app.jobs.publish import next_backoff, publish_due
from app.services.repository import get_repository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def run_worker() -> None:
    settings = get_settings()
    configure_logging()
    telemetry_runtime = setup_telemetry(settings)
    repository = get_repository()

    backoff = settings.publish_sweep_interval_seconds

    try:
        while True:
            try:
                with tracer.start_as_current_span("worker.publish_sweep") as span:
                    published = await publish_due(repository, limit=settings.publish_sweep_batch_size)
                    span.set_attribute("jobs.published", published)
                backoff = settings.publish_sweep_interval_seconds
                await asyncio.sleep(settings.publish_sweep_interval_seconds)
            except Exception as exc:  # pragma: no cover - keep sweeping through outages
                sleep_for = next_backoff(
                    backoff,
                    max_backoff=settings.publish_sweep_max_backoff_seconds,
                    jitter=random.uniform(0.0, 0.5),
                )
                logger.exception("publish sweep failed: %s; retry in %.1fs", exc, sleep_for)
                await asyncio.sleep(sleep_for)
                backoff = sleep_for
    finally:
        await repository.close()
        shutdown_telemetry(telemetry_runtime)


if __name__ == "__main__":
    asyncio.run(run_worker())
