"""
异常定义模块 (Exception Definitions)

所有可预期的失败都继承 HostwatchError，并携带 CLI 退出码，
由命令行入口统一转换为 "Error: ..." 输出和进程退出状态。
"""
from typing import Optional


class HostwatchError(Exception):
    """异常基类 (Base Error)"""
    exit_code: int = 1

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ConfigError(HostwatchError):
    """配置文件内容非法 (Invalid Configuration)"""
    exit_code = 1


class DiskQueryError(HostwatchError):
    """本地磁盘空间查询失败 (Disk Query Failed)"""
    exit_code = 1


class RemoteCommandError(HostwatchError):
    """远程命令执行失败或输出无法解析 (Remote Command Failed)"""
    exit_code = 1


class AlertDeliveryError(HostwatchError):
    """告警邮件重试后仍发送失败 (Alert Delivery Failed)"""
    exit_code = 3
