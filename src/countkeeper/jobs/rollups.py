"""Monthly and yearly rollup schedules."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from countkeeper.core.settings import settings
from countkeeper.services.rollup import RollupAggregator, RollupResult
from countkeeper.services.scheduler import Cron, register

logger = logging.getLogger(__name__)


async def run_rollup(period: str, aggregator: RollupAggregator | None = None) -> RollupResult:
    """Run one rollup in a worker thread so the event loop keeps ticking.

    Failures propagate to the schedule's error channel; a transient failure
    is retried by the next natural occurrence, never immediately.
    """
    job_aggregator = aggregator or RollupAggregator()
    return await asyncio.to_thread(job_aggregator.aggregate, period)


def register_rollups(
    aggregator: RollupAggregator | None = None,
    *,
    start: bool = True,
    tz: str | None = None,
    **kwargs: Any,
) -> dict[str, Cron]:
    """Register the month and year rollup schedules.

    The month rollup is scheduled ahead of the year rollup on January 1st so
    December reaches the monthly tier before the year is folded into the total.
    """
    zone = tz or settings.rollup_timezone
    schedules = {
        "month": register(
            settings.monthly_rollup_cron,
            run_rollup,
            args=("month", aggregator),
            start=start,
            tz=zone,
            **kwargs,
        ),
        "year": register(
            settings.yearly_rollup_cron,
            run_rollup,
            args=("year", aggregator),
            start=start,
            tz=zone,
            **kwargs,
        ),
    }
    for period, cron in schedules.items():
        logger.info("Registered %s rollup: %r", period, cron)
    return schedules
