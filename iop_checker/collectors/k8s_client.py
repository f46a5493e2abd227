"""
Kubernetes 客户端 - 基于 kubectl

ClusterResourceProbe 的生产实现: 每个查询执行一次 `kubectl get ... -o json`,
同步阻塞, 不缓存 (轮询需要每次看到集群的最新状态)。
"""

import json
import subprocess
from typing import Any, Dict, List, Optional

from ..utils.errors import ClusterAccessError, NotReadyError, ResourceNotFoundError
from .probe import ClusterResourceProbe, GroupVersionResource


def _is_not_found(error: str) -> bool:
    lowered = error.lower()
    return "(notfound)" in lowered or "not found" in lowered


class KubectlWrapper(ClusterResourceProbe):
    """kubectl 封装

    查询失败时抛出 ResourceNotFoundError (资源不存在) 或 ClusterAccessError (其他错误),
    两者都属于 NotReadyError, 可以被 Poller 重试。
    """

    def __init__(
        self,
        context: Optional[str] = None,
        kubectl: str = "kubectl",
        request_timeout: int = 10,
    ):
        """
        Args:
            context: kubeconfig context (默认使用 current-context)
            kubectl: kubectl 可执行文件
            request_timeout: 单次 kubectl 调用超时 (秒)
        """
        self.context = context
        self.kubectl = kubectl
        self.request_timeout = request_timeout
        self.kubectl_cmd = self._build_kubectl_cmd()

    def _build_kubectl_cmd(self) -> List[str]:
        """构建 kubectl 命令前缀"""
        cmd = [self.kubectl]
        if self.context:
            cmd.extend(["--context", self.context])
        return cmd

    def run(self, cmd: List[str], timeout: Optional[int] = None, parse_json: bool = True) -> Dict:
        """
        执行命令并解析结果

        Args:
            cmd: 命令列表
            timeout: 超时时间（秒）, 默认 request_timeout
            parse_json: 是否尝试把输出解析为 JSON

        Returns:
            {"success": bool, "data": any, "error": str, "cmd": str}
        """
        timeout = timeout or self.request_timeout
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout
            )
        except subprocess.TimeoutExpired:
            return {
                "success": False,
                "error": f"Command timed out after {timeout}s",
                "cmd": " ".join(cmd)
            }
        except OSError as e:
            return {
                "success": False,
                "error": str(e),
                "cmd": " ".join(cmd)
            }

        if result.returncode != 0:
            return {
                "success": False,
                "error": result.stderr.strip(),
                "cmd": " ".join(cmd)
            }

        if parse_json:
            try:
                return {"success": True, "data": json.loads(result.stdout)}
            except json.JSONDecodeError:
                pass
        # 不是 JSON，返回原始文本
        return {"success": True, "data": result.stdout.strip()}

    def _get(self, resource: str, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        """获取单个资源的 JSON"""
        cmd = self.kubectl_cmd + ["get", resource, name]
        if namespace:
            cmd.extend(["-n", namespace])
        cmd.extend(["-o", "json"])

        result = self.run(cmd)
        if not result.get("success"):
            error = result.get("error", "")
            if _is_not_found(error):
                raise ResourceNotFoundError(
                    f"{resource} {name} not found",
                    resource_type=resource,
                    resource_name=name,
                    namespace=namespace,
                )
            raise ClusterAccessError(error or "kubectl get failed", cmd=result.get("cmd"))

        data = result.get("data")
        if not isinstance(data, dict):
            raise ClusterAccessError(
                f"unexpected kubectl output for {resource} {name}", cmd=" ".join(cmd)
            )
        return data

    # === 命名空间级资源 ===

    def get_service(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._get("services", name, namespace)

    def get_service_account(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._get("serviceaccounts", name, namespace)

    def get_deployment(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._get("deployments", name, namespace)

    def get_config_map(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._get("configmaps", name, namespace)

    def get_pod_disruption_budget(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._get("poddisruptionbudgets", name, namespace)

    def get_horizontal_pod_autoscaler(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._get("horizontalpodautoscalers", name, namespace)

    # === 集群级资源 ===

    def get_validating_webhook(self, name: str) -> Dict[str, Any]:
        return self._get("validatingwebhookconfigurations", name)

    def get_mutating_webhook(self, name: str) -> Dict[str, Any]:
        return self._get("mutatingwebhookconfigurations", name)

    def get_custom_resource_definition(self, name: str) -> Dict[str, Any]:
        return self._get("customresourcedefinitions", name)

    # === 自定义资源 ===

    def get_custom_resource(
        self, gvr: GroupVersionResource, namespace: str, name: str
    ) -> Dict[str, Any]:
        """按 resource.version.group 形式查询, 例如 istiooperators.v1alpha1.install.istio.io"""
        return self._get(str(gvr), name, namespace or None)

    # === Pod ===

    def check_pods_ready(self, namespace: str, selector: Optional[str] = None) -> List[str]:
        """
        检查 Pod 是否全部就绪

        Running 且所有容器 ready 视为就绪; Succeeded (已完成的 Job) 忽略。

        Returns:
            就绪 Pod 名称列表
        """
        cmd = self.kubectl_cmd + ["get", "pods", "-n", namespace]
        if selector:
            cmd.extend(["-l", selector])
        cmd.extend(["-o", "json"])

        result = self.run(cmd)
        if not result.get("success"):
            raise ClusterAccessError(result.get("error") or "kubectl get pods failed", cmd=result.get("cmd"))

        data = result.get("data")
        items = data.get("items", []) if isinstance(data, dict) else []
        if not items:
            where = f"{namespace} ({selector})" if selector else namespace
            raise NotReadyError(f"no pods found in {where}")

        ready, not_ready = [], []
        for pod in items:
            name = pod.get("metadata", {}).get("name", "")
            status = pod.get("status", {})
            phase = status.get("phase", "Unknown")
            if phase == "Succeeded":
                continue

            container_statuses = status.get("containerStatuses") or []
            if phase == "Running" and container_statuses and all(
                cs.get("ready") for cs in container_statuses
            ):
                ready.append(name)
            else:
                not_ready.append(f"{name}({phase})")

        if not_ready:
            raise NotReadyError(
                f"pods not ready in {namespace}: {', '.join(not_ready)}",
                details={"namespace": namespace},
            )
        return ready

    def get_pod_logs(self, namespace: str, selector: str, tail: int = 10000000) -> str:
        cmd = self.kubectl_cmd + [
            "logs", "-n", namespace,
            "-l", selector,
            f"--tail={tail}"
        ]
        result = self.run(cmd, timeout=max(self.request_timeout, 30), parse_json=False)
        if not result.get("success"):
            raise ClusterAccessError(result.get("error") or "kubectl logs failed", cmd=result.get("cmd"))
        return result.get("data", "")
