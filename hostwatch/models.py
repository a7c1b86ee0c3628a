"""
巡检数据模型（Pydantic）。

HostResult 列表是巡检的主要产物，文本渲染和邮件正文都由它派生。
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

TOTAL_INSTANCE = "_Total"


def format_percent(value: float) -> str:
    """百分比显示：去掉多余的小数位，85.0 -> '85'，85.25 -> '85.25'。"""
    return f"{value:g}"


class CounterSample(BaseModel):
    """一次计数器查询中的单个实例读数（_Total 为汇总实例）。"""
    instance: str
    value: float


class MetricSample(BaseModel):
    """单次 CPU 采样。"""
    host: str
    index: int = Field(ge=0)
    value: float


class HostResult(BaseModel):
    """单台主机的巡检结果，每台主机恰好产生一条。"""
    host: str
    average: Optional[float] = None
    instant: Optional[int] = None
    alert: bool = False
    details: str = ""

    @classmethod
    def from_readings(cls, host: str, average: float, instant: int, threshold: float) -> "HostResult":
        """根据平均值和瞬时值构造结果，严格大于阈值才告警。"""
        alert = average > threshold or instant > threshold
        details = ""
        if alert:
            details = (
                f"Average CPU: {format_percent(average)}% | "
                f"Instant CPU: {format_percent(instant)}%"
            )
        return cls(host=host, average=average, instant=instant, alert=alert, details=details)

    @classmethod
    def from_error(cls, host: str, message: str) -> "HostResult":
        return cls(host=host, alert=True, details=f"Error: {message}")

    @property
    def failed(self) -> bool:
        return self.average is None

    def summary(self) -> str:
        """单行状态文本，供 CLI 输出。"""
        if self.failed:
            return f"{self.host}: Error encountered: {self.details.removeprefix('Error: ')}"
        state = "ALERT" if self.alert else "OK"
        return (
            f"{self.host}: [{state}] Average CPU: {format_percent(self.average)}% | "
            f"Instant CPU: {format_percent(self.instant)}%"
        )


def average_of(samples: list[MetricSample]) -> float:
    """样本算术平均值，保留两位小数。"""
    if not samples:
        raise ValueError("Cannot average an empty sample list")
    return round(sum(s.value for s in samples) / len(samples), 2)
