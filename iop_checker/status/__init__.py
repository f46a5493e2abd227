"""
安装状态模块 - 解析并聚合 IstioOperator 上报的健康状态
"""

from .models import ComponentStatus, InstallStatus, InstallStatusReport
from .aggregator import (
    StatusTarget,
    aggregate,
    check_install_status,
    decode_install_status,
    decode_status_document,
    format_report,
    load_document,
)

__all__ = [
    # 模型
    "ComponentStatus",
    "InstallStatus",
    "InstallStatusReport",
    # 聚合
    "StatusTarget",
    "aggregate",
    "check_install_status",
    "decode_install_status",
    "decode_status_document",
    "format_report",
    "load_document",
]
