from __future__ import annotations

import asyncio
import logging
import random

from opentelemetry import trace

from sublet_ingest.core.config import Settings, get_settings
from sublet_ingest.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from sublet_ingest.services.admin_client import AdminClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def run_dedup_cycle(client: AdminClient) -> int:
    with tracer.start_as_current_span("worker.dedup_cycle") as span:
        preview = await client.preview_dedup()
        pending = int(preview.get("docsToDelete", 0))
        span.set_attribute("dedup.pending", pending)
        if not pending:
            logger.info("dedup: no duplicates among %s listings", preview.get("totalDocs", 0))
            return 0
        result = await client.apply_dedup()
        deleted = int(result.get("deleted", 0))
        logger.info("dedup: deleted %s duplicate listings", deleted)
        return deleted


def next_backoff(current: float, *, max_backoff: float, jitter: float) -> float:
    return min(max(current, 1.0) * (2.0 + jitter), max_backoff)


async def run_worker(settings: Settings | None = None, *, max_cycles: int | None = None) -> None:
    settings = settings or get_settings()
    configure_logging(settings)
    telemetry_runtime = setup_telemetry(settings, service_suffix="-worker")
    client = AdminClient(settings.worker_api_base_url)

    interval = settings.worker_dedup_interval_seconds
    backoff = settings.worker_retry_base_seconds
    cycles = 0
    try:
        while max_cycles is None or cycles < max_cycles:
            cycles += 1
            try:
                await run_dedup_cycle(client)
                backoff = settings.worker_retry_base_seconds
                await asyncio.sleep(interval)
            except Exception as exc:
                sleep_for = next_backoff(
                    backoff, max_backoff=settings.worker_max_backoff_seconds, jitter=random.uniform(0.0, 0.5)
                )
                logger.exception("dedup cycle failed: %s; retry in %.1fs", exc, sleep_for)
                await asyncio.sleep(sleep_for)
                backoff = sleep_for
    finally:
        shutdown_telemetry(telemetry_runtime)


def main() -> None:
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
