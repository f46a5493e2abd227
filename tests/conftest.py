"""
测试公共设施: 内存中的 ClusterResourceProbe 实现
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from iop_checker.collectors.probe import ClusterResourceProbe, GroupVersionResource
from iop_checker.utils.errors import NotReadyError, ResourceNotFoundError
from iop_checker.utils.retry import RetryPolicy


class FakeProbe(ClusterResourceProbe):
    """以字典保存集群资源, 并记录每次查询"""

    def __init__(self):
        self.resources: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.ready_pods: Dict[str, List[str]] = {}
        self.logs = ""
        self.calls: List[Tuple[str, str, str]] = []

    def add(self, kind: str, namespace: str, name: str, obj: Optional[Dict[str, Any]] = None):
        self.resources[(kind, namespace, name)] = obj if obj is not None else {
            "kind": kind, "metadata": {"name": name, "namespace": namespace}
        }

    def _get(self, kind: str, namespace: str, name: str) -> Dict[str, Any]:
        self.calls.append((kind, namespace, name))
        try:
            return self.resources[(kind, namespace, name)]
        except KeyError:
            raise ResourceNotFoundError(
                f"{kind} {name} not found", resource_type=kind,
                resource_name=name, namespace=namespace,
            ) from None

    def get_service(self, namespace, name):
        return self._get("Service", namespace, name)

    def get_service_account(self, namespace, name):
        return self._get("ServiceAccount", namespace, name)

    def get_deployment(self, namespace, name):
        return self._get("Deployment", namespace, name)

    def get_config_map(self, namespace, name):
        return self._get("ConfigMap", namespace, name)

    def get_pod_disruption_budget(self, namespace, name):
        return self._get("PodDisruptionBudget", namespace, name)

    def get_horizontal_pod_autoscaler(self, namespace, name):
        return self._get("HorizontalPodAutoscaler", namespace, name)

    def get_validating_webhook(self, name):
        return self._get("ValidatingWebhookConfiguration", "", name)

    def get_mutating_webhook(self, name):
        return self._get("MutatingWebhookConfiguration", "", name)

    def get_custom_resource_definition(self, name):
        return self._get("CustomResourceDefinition", "", name)

    def get_custom_resource(self, gvr: GroupVersionResource, namespace, name):
        return self._get(gvr.resource, namespace, name)

    def check_pods_ready(self, namespace, selector=None):
        self.calls.append(("Pods", namespace, selector or ""))
        if namespace not in self.ready_pods:
            raise NotReadyError(f"no pods found in {namespace}")
        return list(self.ready_pods[namespace])

    def get_pod_logs(self, namespace, selector, tail=10000000):
        self.calls.append(("Logs", namespace, selector))
        return self.logs


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """足够短的重试策略, 用于期望超时的用例"""
    return RetryPolicy(timeout=0.25, delay=0.05)
