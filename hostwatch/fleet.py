"""Fleet poller - runs one monitor task per host and joins them all."""
import asyncio
import logging
from typing import List

from hostwatch.config import MonitorConfig
from hostwatch.models import HostResult
from hostwatch.monitor import ChannelFactory, Sleeper, monitor_host
from hostwatch.remote import open_channel

logger = logging.getLogger(__name__)


async def poll_fleet(
    config: MonitorConfig,
    channel_factory: ChannelFactory = open_channel,
    sleep: Sleeper = asyncio.sleep,
) -> List[HostResult]:
    """Poll every configured host concurrently and wait for all of them.

    Results come back in configured host order, exactly one per host.
    """
    semaphore = asyncio.Semaphore(config.max_parallel)

    async def _bounded(host: str) -> HostResult:
        async with semaphore:
            return await monitor_host(host, config, channel_factory, sleep)

    logger.info(f"Polling {len(config.hosts)} host(s), max {config.max_parallel} in parallel")
    tasks = [asyncio.create_task(_bounded(host)) for host in config.hosts]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    results: List[HostResult] = []
    for host, outcome in zip(config.hosts, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"Monitor task for {host} crashed: {outcome!r}")
            results.append(HostResult.from_error(host, str(outcome) or outcome.__class__.__name__))
        else:
            results.append(outcome)
    return results
