"""
安装校验入口

一次校验运行:
1. IstioOperator CR 状态全部 HEALTHY
2. 安装命名空间内 Pod 全部就绪
3. 生成 manifest 中的每个对象都能在集群中找到

任一步骤失败即抛出对应的 VerifyError, 不存在部分成功。
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .collectors.probe import ClusterResourceProbe
from .manifest.differ import KindRegistry, ReconcileReport, reconcile
from .manifest.objects import parse_k8s_objects_from_yaml
from .status.aggregator import StatusTarget, check_install_status, format_report
from .status.models import InstallStatusReport
from .utils.retry import RetryPolicy, poll

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    """校验成功时的汇总信息"""
    status: InstallStatusReport
    ready_pods: List[str] = field(default_factory=list)
    reconcile: ReconcileReport = field(default_factory=ReconcileReport)


def verify_installation(
    probe: ClusterResourceProbe,
    manifest: str,
    status_policy: RetryPolicy,
    object_policy: RetryPolicy,
    target: StatusTarget = StatusTarget(),
    registry: Optional[KindRegistry] = None,
    fail_fast: bool = True,
) -> VerificationResult:
    """校验安装状态并比对集群资源与生成的 manifest

    Args:
        probe: 集群查询能力 (由调用方创建并持有)
        manifest: 安装器生成的多文档 manifest
        status_policy: 状态与 Pod 就绪轮询策略
        object_policy: 单个对象查询的轮询策略
        target: IstioOperator CR 与 operator 位置
        registry: kind 注册表
        fail_fast: 第一个缺失对象即终止比对

    Raises:
        DecodeError / UnhealthyError / PollTimeoutError / ReconciliationMismatchError
    """
    logger.info("=== verifying istio installation ===")

    # manifest 格式错误无需等待集群
    parse_k8s_objects_from_yaml(manifest)

    status = check_install_status(probe, status_policy, target)
    logger.info("IstioOperator status: %s", format_report(status))

    ready_pods = poll(lambda: probe.check_pods_ready(target.namespace), status_policy)
    logger.info("%d pods ready in %s", len(ready_pods or []), target.namespace)

    report = reconcile(manifest, probe, object_policy, registry=registry, fail_fast=fail_fast)
    logger.info(
        "=== succeeded: %d objects verified, %d skipped ===",
        len(report.verified), len(report.skipped),
    )
    return VerificationResult(status=status, ready_pods=list(ready_pods or []), reconcile=report)
