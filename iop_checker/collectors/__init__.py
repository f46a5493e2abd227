"""
收集器模块 - 集群资源查询
"""

from .probe import (
    ENVOY_FILTER_GVR,
    IOP_GVR,
    ClusterResourceProbe,
    GroupVersionResource,
)
from .k8s_client import KubectlWrapper

__all__ = [
    # 查询接口
    "ClusterResourceProbe",
    "GroupVersionResource",
    "IOP_GVR",
    "ENVOY_FILTER_GVR",
    # K8s 客户端
    "KubectlWrapper",
]
