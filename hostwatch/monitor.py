"""
单主机 CPU 巡检模块。

对一台主机只建立一次远程会话，按固定间隔采样若干次 CPU 汇总使用率，
计算平均值后再取一次瞬时负载，最终生成一条 HostResult。
任何失败（连接、采样、查询、超时）都转换为告警结果，不影响其他主机。
"""
import asyncio
import logging
from typing import Awaitable, Callable, List

from hostwatch.config import MonitorConfig, SSHCredentials
from hostwatch.models import HostResult, MetricSample, average_of
from hostwatch.remote import (
    COUNTER_COMMAND,
    LOAD_COMMAND,
    SSHChannel,
    open_channel,
    parse_counter_output,
    parse_load_output,
    total_value,
)

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[str, SSHCredentials, int], SSHChannel]
Sleeper = Callable[[float], Awaitable[None]]


def _close_late_channel(fut: "asyncio.Future") -> None:
    """任务已被取消但连接随后才建立时，补关该会话。"""
    if fut.cancelled() or fut.exception() is not None:
        return
    fut.result().close()


async def _open(loop, host: str, config: MonitorConfig, channel_factory: ChannelFactory) -> SSHChannel:
    opening = loop.run_in_executor(None, channel_factory, host, config.ssh, config.command_timeout)
    try:
        return await asyncio.shield(opening)
    except asyncio.CancelledError:
        opening.add_done_callback(_close_late_channel)
        raise


async def _poll_host(
    host: str,
    config: MonitorConfig,
    channel_factory: ChannelFactory,
    sleep: Sleeper,
) -> HostResult:
    loop = asyncio.get_running_loop()
    channel = await _open(loop, host, config, channel_factory)
    try:
        samples: List[MetricSample] = []
        for i in range(config.sample_count):
            output = await loop.run_in_executor(None, channel.run, COUNTER_COMMAND)
            value = total_value(parse_counter_output(output))
            samples.append(MetricSample(host=host, index=i, value=value))
            logger.debug(f"{host} sample {i + 1}/{config.sample_count}: {value}%")
            # 最后一次采样后不再等待
            if i < config.sample_count - 1:
                await sleep(config.sample_interval)

        average = average_of(samples)
        instant = parse_load_output(await loop.run_in_executor(None, channel.run, LOAD_COMMAND))
    finally:
        channel.close()

    return HostResult.from_readings(host, average, instant, config.threshold)


async def monitor_host(
    host: str,
    config: MonitorConfig,
    channel_factory: ChannelFactory = open_channel,
    sleep: Sleeper = asyncio.sleep,
) -> HostResult:
    """巡检一台主机，始终返回恰好一条结果。

    Args:
        host: 主机名或 'host:port'。
        config: 巡检配置（阈值、采样次数/间隔、凭据、超时）。
        channel_factory: 建立远程会话的函数，测试时可替换。
        sleep: 采样间隔等待函数。

    Returns:
        成功时为带平均值/瞬时值的结果，失败时为 alert=True 的错误结果。
    """
    timeout = config.effective_host_timeout
    logger.info(f"Polling {host}: {config.sample_count} samples every {config.sample_interval}s")
    try:
        result = await asyncio.wait_for(
            _poll_host(host, config, channel_factory, sleep),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        message = f"timed out after {timeout}s"
    except Exception as e:
        message = str(e) or e.__class__.__name__
    else:
        logger.info(f"Finished {host}: average={result.average}% instant={result.instant}% alert={result.alert}")
        return result

    logger.warning(f"Error encountered on {host}: {message}")
    return HostResult.from_error(host, message)
