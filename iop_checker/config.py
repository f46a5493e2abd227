"""
配置 - 从环境变量 (以及 .env 文件) 读取

配置只在调用点转换为显式的 RetryPolicy / StatusTarget, 核心模块不读取环境变量。
"""

import os
from dataclasses import dataclass, replace
from typing import Optional

from .status.aggregator import StatusTarget
from .utils.errors import ConfigurationError
from .utils.retry import RetryPolicy

ENV_PREFIX = "IOP_CHECKER_"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(ENV_PREFIX + name)
    if val is None or val == "":
        return default
    return val


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{ENV_PREFIX}{name} must be a number", field=ENV_PREFIX + name, value=raw
        ) from None


@dataclass(frozen=True)
class VerifierSettings:
    """校验运行的全部可配置项"""

    kube_context: Optional[str] = None
    kubectl: str = "kubectl"
    namespace: str = "istio-system"
    iop_name: str = "test-istiocontrolplane"
    operator_namespace: str = "istio-operator"
    operator_service: str = "istio-operator"
    operator_selector: str = "name=istio-operator"

    # 状态轮询
    status_timeout: float = 100.0
    status_delay: float = 1.0

    # 单个对象轮询
    object_timeout: float = 30.0
    object_delay: float = 0.1

    @classmethod
    def from_env(cls) -> "VerifierSettings":
        """读取 IOP_CHECKER_* 环境变量, 未设置的使用默认值"""
        defaults = cls()
        return cls(
            kube_context=_env("KUBE_CONTEXT", defaults.kube_context),
            kubectl=_env("KUBECTL", defaults.kubectl),
            namespace=_env("NAMESPACE", defaults.namespace),
            iop_name=_env("IOP_NAME", defaults.iop_name),
            operator_namespace=_env("OPERATOR_NAMESPACE", defaults.operator_namespace),
            operator_service=_env("OPERATOR_SERVICE", defaults.operator_service),
            operator_selector=_env("OPERATOR_SELECTOR", defaults.operator_selector),
            status_timeout=_env_float("STATUS_TIMEOUT", defaults.status_timeout),
            status_delay=_env_float("STATUS_DELAY", defaults.status_delay),
            object_timeout=_env_float("OBJECT_TIMEOUT", defaults.object_timeout),
            object_delay=_env_float("OBJECT_DELAY", defaults.object_delay),
        )

    def override(self, **changes) -> "VerifierSettings":
        """用非 None 的值覆盖 (CLI 参数优先于环境变量)"""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def status_policy(self) -> RetryPolicy:
        return RetryPolicy(timeout=self.status_timeout, delay=self.status_delay)

    def object_policy(self) -> RetryPolicy:
        return RetryPolicy(timeout=self.object_timeout, delay=self.object_delay)

    def status_target(self) -> StatusTarget:
        return StatusTarget(
            namespace=self.namespace,
            name=self.iop_name,
            operator_namespace=self.operator_namespace,
            operator_service=self.operator_service,
            operator_selector=self.operator_selector,
        )
