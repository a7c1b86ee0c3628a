"""
远程执行通道模块。

通过 paramiko 建立到目标主机的 SSH 会话，在同一会话上重复执行 CPU 计数器查询。
计数器查询读取两次 /proc/stat 的 cpu* 行，按差值计算每个实例的忙碌百分比，
汇总行（cpu）记为 _Total 实例。

paramiko 的调用均为阻塞式，由上层放入线程池执行。
"""
import logging
from typing import Dict, List, Optional, Tuple

import paramiko

from hostwatch.config import SSHCredentials
from hostwatch.errors import RemoteCommandError
from hostwatch.models import TOTAL_INSTANCE, CounterSample

logger = logging.getLogger(__name__)

# 采样窗口 1 秒，输出两份 cpu* 快照
COUNTER_COMMAND = "grep '^cpu' /proc/stat; sleep 1; grep '^cpu' /proc/stat"
# 瞬时负载只取汇总行，窗口更短
LOAD_COMMAND = "grep '^cpu ' /proc/stat; sleep 0.2; grep '^cpu ' /proc/stat"


class SSHChannel:
    """可复用的 SSH 会话，供一台主机的多次查询共用。"""

    def __init__(self, host: str, client: paramiko.SSHClient, command_timeout: int = 30):
        self.host = host
        self._client: Optional[paramiko.SSHClient] = client
        self.command_timeout = command_timeout

    @property
    def closed(self) -> bool:
        return self._client is None

    def run(self, command: str) -> str:
        """执行远程命令并返回标准输出，非零退出码视为失败。"""
        if self._client is None:
            raise RemoteCommandError(f"Channel to {self.host} is closed")
        _, stdout, stderr = self._client.exec_command(command, timeout=self.command_timeout)
        out = stdout.read().decode(errors="replace")
        err = stderr.read().decode(errors="replace")
        code = stdout.channel.recv_exit_status()
        if code != 0:
            raise RemoteCommandError(
                f"Command on {self.host} exited with {code}: {err.strip()[:500] or out.strip()[:500]}"
            )
        return out

    def close(self):
        """关闭会话，可重复调用。"""
        if self._client is not None:
            client, self._client = self._client, None
            client.close()
            logger.debug(f"Channel to {self.host} closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def split_host(host: str, default_port: int = 22) -> Tuple[str, int]:
    """解析 'host' 或 'host:port' 写法。"""
    if host.count(":") == 1:
        name, _, port = host.partition(":")
        try:
            return name, int(port)
        except ValueError:
            raise RemoteCommandError(f"Invalid port in host entry: {host}") from None
    return host, default_port


def open_channel(host: str, credentials: SSHCredentials, command_timeout: int = 30) -> SSHChannel:
    """建立到目标主机的 SSH 会话。

    连接失败时客户端会被关闭，异常原样抛出由调用方转换为巡检结果。
    """
    hostname, port = split_host(host, credentials.port)
    client = paramiko.SSHClient()
    client.load_system_host_keys()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    try:
        client.connect(
            hostname,
            port=port,
            username=credentials.username or None,
            password=credentials.password or None,
            key_filename=credentials.key_filename or None,
            timeout=command_timeout,
            banner_timeout=command_timeout,
            auth_timeout=command_timeout,
            allow_agent=not credentials.password,
            look_for_keys=not (credentials.password or credentials.key_filename),
        )
    except Exception:
        client.close()
        raise
    logger.debug(f"Channel to {hostname}:{port} opened")
    return SSHChannel(host, client, command_timeout=command_timeout)


def _parse_stat_line(line: str) -> Tuple[str, int, int]:
    """解析一行 /proc/stat，返回 (实例名, 总时间片, 空闲时间片)。"""
    parts = line.split()
    label = parts[0]
    try:
        fields = [int(v) for v in parts[1:9]]
    except ValueError:
        raise RemoteCommandError(f"Unexpected /proc/stat line: {line!r}") from None
    if len(fields) < 4:
        raise RemoteCommandError(f"Unexpected /proc/stat line: {line!r}")
    idle = fields[3] + (fields[4] if len(fields) > 4 else 0)
    instance = TOTAL_INSTANCE if label == "cpu" else label[3:]
    return instance, sum(fields), idle


def parse_counter_output(text: str) -> List[CounterSample]:
    """把两份 cpu* 快照换算为各实例的 CPU 使用率。

    Raises:
        RemoteCommandError: 输出中没有成对的快照时抛出。
    """
    first: Dict[str, Tuple[int, int]] = {}
    second: Dict[str, Tuple[int, int]] = {}
    order: List[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith("cpu"):
            continue
        instance, total, idle = _parse_stat_line(line)
        if instance not in first:
            first[instance] = (total, idle)
            order.append(instance)
        else:
            second[instance] = (total, idle)

    samples = []
    for instance in order:
        if instance not in second:
            continue
        d_total = second[instance][0] - first[instance][0]
        d_idle = second[instance][1] - first[instance][1]
        busy = 0.0 if d_total <= 0 else (d_total - d_idle) / d_total * 100
        samples.append(CounterSample(instance=instance, value=round(max(busy, 0.0), 2)))

    if not samples:
        raise RemoteCommandError("Counter output contained no complete CPU snapshots")
    return samples


def total_value(samples: List[CounterSample]) -> float:
    """取 _Total 汇总实例的读数。"""
    for s in samples:
        if s.instance == TOTAL_INSTANCE:
            return s.value
    raise RemoteCommandError("Counter output has no _Total instance")


def parse_load_output(text: str) -> int:
    """瞬时负载百分比，取整数。"""
    return int(round(total_value(parse_counter_output(text))))
