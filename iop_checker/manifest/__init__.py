"""
manifest 模块 - 解析生成的 manifest 并与集群资源比对
"""

from .objects import K8sObject, parse_k8s_object, parse_k8s_objects_from_yaml
from .differ import KindRegistry, ReconcileReport, default_registry, reconcile

__all__ = [
    "K8sObject",
    "parse_k8s_object",
    "parse_k8s_objects_from_yaml",
    "KindRegistry",
    "ReconcileReport",
    "default_registry",
    "reconcile",
]
