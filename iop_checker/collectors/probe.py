"""
集群资源探测接口

核心逻辑只依赖这里定义的查询能力; 生产环境由 KubectlWrapper 实现,
测试中可以用 MagicMock(spec=ClusterResourceProbe) 或简单的子类替代。

约定:
- 每个查询要么返回资源, 要么抛出异常 (通常是 ResourceNotFoundError)
- 核心把任何查询异常视为 "尚未就绪", 交给 Poller 重试
- 所有操作只读, 不修改集群状态
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional


class GroupVersionResource(NamedTuple):
    """自定义资源的 group/version/resource 三元组"""
    group: str
    version: str
    resource: str

    def __str__(self) -> str:
        return f"{self.resource}.{self.version}.{self.group}"


# IstioOperator CR
IOP_GVR = GroupVersionResource("install.istio.io", "v1alpha1", "istiooperators")

# EnvoyFilter CR
ENVOY_FILTER_GVR = GroupVersionResource("networking.istio.io", "v1alpha3", "envoyfilters")


class ClusterResourceProbe(ABC):
    """按资源类型划分的查询能力集合"""

    # === 标准 K8s 资源 ===

    @abstractmethod
    def get_service(self, namespace: str, name: str) -> Dict[str, Any]:
        """查询 Service"""

    @abstractmethod
    def get_service_account(self, namespace: str, name: str) -> Dict[str, Any]:
        """查询 ServiceAccount"""

    @abstractmethod
    def get_deployment(self, namespace: str, name: str) -> Dict[str, Any]:
        """查询 Deployment"""

    @abstractmethod
    def get_config_map(self, namespace: str, name: str) -> Dict[str, Any]:
        """查询 ConfigMap"""

    @abstractmethod
    def get_pod_disruption_budget(self, namespace: str, name: str) -> Dict[str, Any]:
        """查询 PodDisruptionBudget"""

    @abstractmethod
    def get_horizontal_pod_autoscaler(self, namespace: str, name: str) -> Dict[str, Any]:
        """查询 HorizontalPodAutoscaler"""

    # === 集群级资源 ===

    @abstractmethod
    def get_validating_webhook(self, name: str) -> Dict[str, Any]:
        """查询 ValidatingWebhookConfiguration"""

    @abstractmethod
    def get_mutating_webhook(self, name: str) -> Dict[str, Any]:
        """查询 MutatingWebhookConfiguration"""

    @abstractmethod
    def get_custom_resource_definition(self, name: str) -> Dict[str, Any]:
        """查询 CustomResourceDefinition"""

    # === 自定义资源 ===

    @abstractmethod
    def get_custom_resource(
        self, gvr: GroupVersionResource, namespace: str, name: str
    ) -> Dict[str, Any]:
        """按 GVR 查询任意自定义资源, 返回完整对象 (含 status)"""

    # === 状态检查辅助能力 ===

    @abstractmethod
    def check_pods_ready(self, namespace: str, selector: Optional[str] = None) -> List[str]:
        """检查命名空间内 (可选 selector) 的 Pod 全部就绪

        Returns:
            就绪 Pod 名称列表

        Raises:
            NotReadyError: 没有 Pod 或存在未就绪 Pod
        """

    @abstractmethod
    def get_pod_logs(self, namespace: str, selector: str, tail: int = 10000000) -> str:
        """按 selector 获取 Pod 日志"""
