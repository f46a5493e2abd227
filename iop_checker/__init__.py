"""
IstioOperator 安装校验工具

- 解析并聚合 IstioOperator 上报的安装状态
- 比对安装器生成的 manifest 与集群中的实际资源
"""

from .collectors import ClusterResourceProbe, GroupVersionResource, KubectlWrapper
from .manifest import K8sObject, KindRegistry, default_registry, reconcile
from .status import InstallStatus, aggregate, check_install_status
from .utils import RetryPolicy, VerifyError, poll
from .verifier import VerificationResult, verify_installation

__version__ = "1.0.0"

__all__ = [
    "ClusterResourceProbe",
    "GroupVersionResource",
    "KubectlWrapper",
    "K8sObject",
    "KindRegistry",
    "default_registry",
    "reconcile",
    "InstallStatus",
    "aggregate",
    "check_install_status",
    "RetryPolicy",
    "VerifyError",
    "poll",
    "VerificationResult",
    "verify_installation",
]
