"""
本地磁盘空间检查模块。

使用 psutil 查询指定分区的剩余空间百分比，与阈值比较后生成状态行。
剩余百分比严格小于阈值才判定为告警，恰好相等视为安全。
"""
import logging
from dataclasses import dataclass

import psutil

from hostwatch.errors import DiskQueryError

logger = logging.getLogger(__name__)

_GB = 1024 ** 3


@dataclass
class DiskStatus:
    """一次磁盘检查的结果。"""
    path: str
    free_bytes: int
    total_bytes: int
    free_percent: float
    threshold: float

    @property
    def below_threshold(self) -> bool:
        return self.free_percent < self.threshold


def check_disk(path: str = "/", threshold: float = 10.0) -> DiskStatus:
    """查询磁盘剩余空间并与阈值比较。

    Raises:
        DiskQueryError: 分区不存在、无权限或总容量为 0 时抛出。
    """
    try:
        usage = psutil.disk_usage(path)
    except OSError as e:
        raise DiskQueryError(f"Cannot query disk usage for {path}: {e}") from e

    if usage.total <= 0:
        raise DiskQueryError(f"Disk {path} reports zero total size")

    free_percent = usage.free / usage.total * 100
    logger.debug(f"Disk {path}: free={usage.free} total={usage.total} ({free_percent:.4f}%)")
    return DiskStatus(
        path=path,
        free_bytes=usage.free,
        total_bytes=usage.total,
        free_percent=free_percent,
        threshold=threshold,
    )


def _pct(value: float) -> str:
    """仅在展示时保留两位小数。"""
    return f"{round(value, 2):g}"


def format_disk_status(status: DiskStatus) -> str:
    """生成面向用户的单行状态文本。"""
    if status.below_threshold:
        return (
            f"WARNING: Free disk space on {status.path} is below {status.threshold:g}%: "
            f"{_pct(status.free_percent)}% free"
        )
    return (
        f"Disk space on {status.path} OK: {status.free_bytes / _GB:.2f} GB free of "
        f"{status.total_bytes / _GB:.2f} GB ({_pct(status.free_percent)}% free)"
    )
