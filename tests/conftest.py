"""
hostwatch 测试基础配置

提供伪造的 SSH 会话、/proc/stat 输出构造函数和基础配置 fixture。
所有测试不依赖真实的 SSH 主机或 SMTP 服务。
"""
from typing import Dict, List, Optional

import pytest

from hostwatch.config import MonitorConfig, SSHCredentials


def stat_output(total: float, per_cpu: Optional[List[float]] = None) -> str:
    """构造两份 /proc/stat 快照，使 _Total 使用率恰为 total（两次间隔 10000 个时间片）。"""
    def _lines(label: str, pct: float) -> List[str]:
        busy = int(round(pct * 100))
        idle = 10000 - busy
        return [f"{label} 0 0 0 0 0 0 0 0 0 0", f"{label} {busy} 0 0 {idle} 0 0 0 0 0 0"]

    first, second = [], []
    a, b = _lines("cpu ", total)
    first.append(a)
    second.append(b)
    for i, pct in enumerate(per_cpu or []):
        a, b = _lines(f"cpu{i}", pct)
        first.append(a)
        second.append(b)
    return "\n".join(first + second) + "\n"


class FakeChannel:
    """按顺序返回预设 CPU 读数的假会话。"""

    def __init__(self, host: str, samples: List[float], instant: float = 0, fail_on: Optional[int] = None,
                 error: str = "boom"):
        self.host = host
        self.samples = list(samples)
        self.instant = instant
        self.fail_on = fail_on
        self.error = error
        self.commands: List[str] = []
        self.closed = False

    def run(self, command: str) -> str:
        from hostwatch.remote import COUNTER_COMMAND

        self.commands.append(command)
        if self.fail_on is not None and len(self.commands) > self.fail_on:
            raise RuntimeError(self.error)
        if command == COUNTER_COMMAND:
            return stat_output(self.samples.pop(0))
        return stat_output(self.instant)

    def close(self):
        self.closed = True


class FakeFleet:
    """channel_factory 替身：按主机名分发 FakeChannel，或对指定主机抛出连接异常。"""

    def __init__(self, plans: Dict[str, dict]):
        self.plans = plans
        self.channels: Dict[str, FakeChannel] = {}
        self.calls: List[tuple] = []

    def __call__(self, host: str, credentials: SSHCredentials, command_timeout: int) -> FakeChannel:
        self.calls.append((host, credentials, command_timeout))
        plan = self.plans[host]
        if "connect_error" in plan:
            raise ConnectionError(plan["connect_error"])
        channel = FakeChannel(
            host,
            plan.get("samples", [0]),
            instant=plan.get("instant", 0),
            fail_on=plan.get("fail_on"),
            error=plan.get("error", "boom"),
        )
        self.channels[host] = channel
        return channel


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def base_config() -> MonitorConfig:
    cfg = MonitorConfig()
    cfg.threshold = 80
    cfg.hosts = ["host-a", "host-b", "host-c"]
    cfg.sample_count = 3
    cfg.sample_interval = 0
    cfg.ssh = SSHCredentials(username="monitor", password="secret")
    cfg.smtp.sender = "monitor@example.com"
    cfg.smtp.recipients = ["ops@example.com"]
    cfg.smtp.retry_delay = 0
    return cfg
