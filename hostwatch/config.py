"""
配置加载模块。

定义所有配置数据类，并从 YAML 文件加载配置。
支持环境变量覆盖密码（HOSTWATCH_SSH_PASSWORD、HOSTWATCH_SMTP_PASSWORD）
和时间间隔简写（如 '15s'、'1m'、'1h'）。
"""
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

import yaml

from hostwatch.errors import ConfigError

DEFAULT_CONFIG_PATH = "/etc/hostwatch/hostwatch.yaml"

# 每次计数器查询在远端固定等待约 1 秒
COUNTER_QUERY_SECONDS = 1
# 连接、瞬时负载查询和网络往返的余量
HOST_TIMEOUT_SLACK = 120

_UNITS = {"s": 1, "m": 60, "h": 3600}


@dataclass(frozen=True)
class SSHCredentials:
    """远程连接凭据，所有巡检任务只读共享。"""
    username: str = ""
    password: str = ""
    key_filename: str = ""
    port: int = 22


@dataclass
class SMTPConfig:
    """告警邮件发送配置。"""
    server: str = "localhost"
    port: int = 25
    sender: str = ""
    recipients: List[str] = field(default_factory=list)
    subject: str = "High CPU Usage Alert"
    username: str = ""
    password: str = ""
    use_tls: bool = False
    start_tls: bool = False
    retries: int = 3
    retry_delay: float = 5


@dataclass
class DiskConfig:
    """本地磁盘检查配置。"""
    path: str = "/"
    threshold: float = 10.0  # 剩余空间百分比下限


@dataclass
class MonitorConfig:
    """主配置，聚合所有子配置。"""
    threshold: float = 80.0  # CPU 告警阈值（百分比）
    hosts: List[str] = field(default_factory=list)
    sample_count: int = 60
    sample_interval: float = 60  # 采样间隔（秒）
    host_timeout: float = 0      # 单主机总超时，0 表示按采样窗口自动推算
    command_timeout: float = 30  # 单条远程命令超时
    max_parallel: int = 16
    ssh: SSHCredentials = field(default_factory=SSHCredentials)
    smtp: SMTPConfig = field(default_factory=SMTPConfig)
    disk: DiskConfig = field(default_factory=DiskConfig)

    @property
    def effective_host_timeout(self) -> float:
        """单主机截止时间：未配置时按采样次数 x (间隔 + 远端查询耗时) 再加余量。"""
        if self.host_timeout > 0:
            return self.host_timeout
        window = self.sample_count * (self.sample_interval + COUNTER_QUERY_SECONDS)
        return math.ceil(window + HOST_TIMEOUT_SLACK)


def _parse_interval(val) -> Union[int, float]:
    """解析时间间隔，支持小数以及 '15s'、'1.5m'、'1h' 等简写格式。"""
    if isinstance(val, bool):
        raise ConfigError(f"Invalid interval: {val!r}")
    if isinstance(val, (int, float)):
        seconds = val
    else:
        s = str(val).strip().lower()
        unit = _UNITS.get(s[-1:])
        if unit:
            s = s[:-1]
        try:
            seconds = float(s) * (unit or 1)
        except ValueError:
            raise ConfigError(f"Invalid interval: {val!r}") from None
    if not math.isfinite(seconds):
        raise ConfigError(f"Invalid interval: {val!r}")
    return int(seconds) if float(seconds).is_integer() else seconds


def _as_list(val) -> List[str]:
    """收件人既可写成单个字符串也可写成列表。"""
    if not val:
        return []
    if isinstance(val, str):
        return [v.strip() for v in val.split(",") if v.strip()]
    return [str(v) for v in val]


def _host_list(val) -> List[str]:
    """hosts 可写成列表，也可写成逗号分隔的单个字符串。"""
    if not val:
        return []
    if isinstance(val, str):
        return _as_list(val)
    if not isinstance(val, list):
        raise ConfigError(f"hosts must be a list, got {type(val).__name__}")
    return [str(h).strip() for h in val]


def _int(name: str, val) -> int:
    try:
        return int(val)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {val!r}") from None


def _percent(name: str, val: Union[int, float, str]) -> float:
    try:
        pct = float(val)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {val!r}") from None
    if not 0 <= pct <= 100:
        raise ConfigError(f"{name} must be between 0 and 100, got {pct}")
    return pct


def validate_config(cfg: MonitorConfig) -> MonitorConfig:
    """校验取值范围，非法时抛出 ConfigError。"""
    for host in cfg.hosts:
        if not host or not host.strip():
            raise ConfigError("Host entries must be non-empty")
    if cfg.sample_count < 1:
        raise ConfigError(f"sample_count must be >= 1, got {cfg.sample_count}")
    if cfg.sample_interval < 0:
        raise ConfigError(f"sample_interval must be >= 0, got {cfg.sample_interval}")
    if cfg.host_timeout < 0 or cfg.command_timeout <= 0:
        raise ConfigError("host_timeout must be >= 0 and command_timeout > 0")
    if cfg.max_parallel < 1:
        raise ConfigError(f"max_parallel must be >= 1, got {cfg.max_parallel}")
    if cfg.smtp.retries < 1:
        raise ConfigError(f"smtp.retries must be >= 1, got {cfg.smtp.retries}")
    return cfg


def load_config(path: str) -> MonitorConfig:
    """从 YAML 文件加载配置。

    Args:
        path: 配置文件路径。

    Returns:
        解析后的 MonitorConfig 实例。

    Raises:
        FileNotFoundError: 配置文件不存在时抛出。
        ConfigError: 配置内容非法时抛出。
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(p) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")

    cfg = MonitorConfig()

    # 巡检参数
    cfg.threshold = _percent("threshold", data.get("threshold", cfg.threshold))
    cfg.hosts = _host_list(data.get("hosts"))
    cfg.sample_count = _int("sample_count", data.get("sample_count", cfg.sample_count))
    cfg.command_timeout = _parse_interval(data.get("command_timeout", cfg.command_timeout))
    cfg.max_parallel = _int("max_parallel", data.get("max_parallel", cfg.max_parallel))
    cfg.sample_interval = _parse_interval(data.get("sample_interval", cfg.sample_interval))
    cfg.host_timeout = _parse_interval(data.get("host_timeout", cfg.host_timeout))

    # SSH 凭据，密码优先从环境变量读取
    s = data.get("ssh", {}) or {}
    cfg.ssh = SSHCredentials(
        username=s.get("username", ""),
        password=os.environ.get("HOSTWATCH_SSH_PASSWORD", s.get("password", "")),
        key_filename=s.get("key_filename", ""),
        port=_int("ssh.port", s.get("port", 22)),
    )

    # 邮件配置
    m = data.get("smtp", {}) or {}
    cfg.smtp.server = m.get("server", cfg.smtp.server)
    cfg.smtp.port = _int("smtp.port", m.get("port", cfg.smtp.port))
    cfg.smtp.sender = m.get("from", cfg.smtp.sender)
    cfg.smtp.recipients = _as_list(m.get("to"))
    cfg.smtp.subject = m.get("subject", cfg.smtp.subject)
    cfg.smtp.username = m.get("username", "")
    cfg.smtp.password = os.environ.get("HOSTWATCH_SMTP_PASSWORD", m.get("password", ""))
    cfg.smtp.use_tls = bool(m.get("use_tls", False))
    cfg.smtp.start_tls = bool(m.get("start_tls", False))
    cfg.smtp.retries = _int("smtp.retries", m.get("retries", cfg.smtp.retries))
    cfg.smtp.retry_delay = _parse_interval(m.get("retry_delay", 5))

    # 磁盘检查配置
    d = data.get("disk", {}) or {}
    cfg.disk.path = d.get("path", cfg.disk.path)
    cfg.disk.threshold = _percent("disk.threshold", d.get("threshold", cfg.disk.threshold))

    return validate_config(cfg)
