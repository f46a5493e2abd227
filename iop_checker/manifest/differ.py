"""
生成 manifest 与集群实际资源的比对

每个 K8sObject 按 kind 在注册表中查找对应的查询函数, 并在独立的重试窗口内轮询。
未注册的 kind 落到空操作处理函数, 视为通过 (已知缺口, 会记录 warning)。
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..collectors.probe import ENVOY_FILTER_GVR, ClusterResourceProbe
from ..utils.errors import (
    NotReadyError,
    PollTimeoutError,
    ReconciliationMismatchError,
    VerifyError,
)
from ..utils.retry import RetryPolicy, poll
from .objects import K8sObject, parse_k8s_objects_from_yaml

logger = logging.getLogger(__name__)

KindHandler = Callable[[ClusterResourceProbe, K8sObject], Any]


def _noop(probe: ClusterResourceProbe, obj: K8sObject) -> None:
    return None


class KindRegistry:
    """kind -> 查询函数 的注册表

    Example:
        registry = default_registry()

        @registry.register("Gateway")
        def _gateway(probe, obj):
            return probe.get_custom_resource(GATEWAY_GVR, obj.namespace, obj.name)
    """

    def __init__(self, handlers: Optional[Dict[str, KindHandler]] = None):
        self._handlers: Dict[str, KindHandler] = dict(handlers or {})

    def register(self, kind: str, handler: Optional[KindHandler] = None):
        """注册查询函数; 省略 handler 时可作为装饰器使用"""
        if handler is None:
            def decorator(func: KindHandler) -> KindHandler:
                self._handlers[kind] = func
                return func
            return decorator
        self._handlers[kind] = handler
        return handler

    def is_registered(self, kind: str) -> bool:
        return kind in self._handlers

    def handler_for(self, kind: str) -> KindHandler:
        """未注册的 kind 返回空操作"""
        return self._handlers.get(kind, _noop)

    def kinds(self) -> List[str]:
        return sorted(self._handlers)

    def copy(self) -> "KindRegistry":
        return KindRegistry(self._handlers)


def default_registry() -> KindRegistry:
    """生成内置 10 种 kind 的注册表 (每次返回新实例)"""
    registry = KindRegistry()
    registry.register("Service", lambda p, o: p.get_service(o.namespace, o.name))
    registry.register("ServiceAccount", lambda p, o: p.get_service_account(o.namespace, o.name))
    registry.register("Deployment", lambda p, o: p.get_deployment(o.namespace, o.name))
    registry.register("ConfigMap", lambda p, o: p.get_config_map(o.namespace, o.name))
    registry.register("ValidatingWebhookConfiguration", lambda p, o: p.get_validating_webhook(o.name))
    registry.register("MutatingWebhookConfiguration", lambda p, o: p.get_mutating_webhook(o.name))
    registry.register("CustomResourceDefinition", lambda p, o: p.get_custom_resource_definition(o.name))
    registry.register(
        "EnvoyFilter",
        lambda p, o: p.get_custom_resource(ENVOY_FILTER_GVR, o.namespace, o.name),
    )
    registry.register(
        "PodDisruptionBudget", lambda p, o: p.get_pod_disruption_budget(o.namespace, o.name)
    )
    registry.register(
        "HorizontalPodAutoscaler",
        lambda p, o: p.get_horizontal_pod_autoscaler(o.namespace, o.name),
    )
    return registry


@dataclass
class ReconcileReport:
    """比对结果

    Attributes:
        verified: 已在集群中找到的对象
        skipped: kind 未注册而跳过的对象
    """
    verified: List[K8sObject] = field(default_factory=list)
    skipped: List[K8sObject] = field(default_factory=list)


def _lookup(handler: KindHandler, probe: ClusterResourceProbe, obj: K8sObject) -> Any:
    try:
        return handler(probe, obj)
    except VerifyError as e:
        raise NotReadyError(
            f"failed to get expected {obj.kind}: {obj.name} from cluster: {e}"
        ) from e


def reconcile(
    manifest: str,
    probe: ClusterResourceProbe,
    policy: RetryPolicy,
    registry: Optional[KindRegistry] = None,
    fail_fast: bool = True,
) -> ReconcileReport:
    """逐个检查生成的资源是否存在于集群中

    Args:
        manifest: 多文档 YAML 文本
        probe: 集群查询能力
        policy: 每个对象独立使用的重试策略
        registry: kind 注册表 (默认使用内置注册表)
        fail_fast: True 时第一个缺失对象即终止比对; False 时收集全部缺失后统一报告

    Returns:
        ReconcileReport

    Raises:
        DecodeError: manifest 解析失败 (不重试)
        ReconciliationMismatchError: 有对象在重试窗口内未找到
    """
    if registry is None:
        registry = default_registry()

    objects = parse_k8s_objects_from_yaml(manifest)
    logger.info("registered kinds: %s", ", ".join(registry.kinds()))

    report = ReconcileReport()
    mismatches: List[Tuple[K8sObject, Optional[BaseException]]] = []
    warned = set()

    for obj in objects:
        handler = registry.handler_for(obj.kind)
        if not registry.is_registered(obj.kind):
            if obj.kind not in warned:
                logger.warning("no lookup registered for kind: %s, skipping verification", obj.kind)
                warned.add(obj.kind)
            report.skipped.append(obj)
            continue

        logger.info("checking kind: %s, namespace: %s, name: %s", obj.kind, obj.namespace, obj.name)
        try:
            poll(functools.partial(_lookup, handler, probe, obj), policy)
        except PollTimeoutError as e:
            logger.error("expected %s not found in cluster: %s", obj.key, e.last_error)
            mismatches.append((obj, e.last_error))
            if fail_fast:
                break
        else:
            report.verified.append(obj)

    if mismatches:
        raise ReconciliationMismatchError(mismatches)
    return report
