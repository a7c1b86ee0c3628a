"""hostwatch - 磁盘空间检查与主机 CPU 巡检告警工具。"""
__version__ = "0.1.0"
