"""
生成 manifest 的解析

把多文档 YAML manifest 拆分为有序的 K8sObject 序列。
解析失败属于致命错误 (DecodeError), 不会被重试。
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, List, Mapping

import yaml

from ..utils.errors import DecodeError


@dataclass(frozen=True)
class K8sObject:
    """manifest 中的单个资源

    Attributes:
        kind: 资源类型 (如 Deployment)
        namespace: 命名空间 (集群级资源为空字符串)
        name: 资源名称
        api_version: apiVersion
        content: 原始文档内容 (只读映射)
    """
    kind: str
    namespace: str
    name: str
    api_version: str = ""
    content: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, hash=False, repr=False
    )

    @property
    def key(self) -> str:
        """Kind/namespace/name 形式的标识"""
        return f"{self.kind}/{self.namespace}/{self.name}"

    def __str__(self) -> str:
        return self.key


def parse_k8s_object(document: Any, index: int = 0) -> K8sObject:
    """把单个已解析文档转换为 K8sObject

    Args:
        document: yaml 解析得到的对象
        index: 文档在 manifest 中的序号 (用于错误信息)

    Raises:
        DecodeError: 不是对象, 或缺少 kind / metadata.name
    """
    if not isinstance(document, Mapping):
        raise DecodeError(
            f"manifest document #{index} is not an object", source="manifest"
        )

    kind = document.get("kind")
    if not isinstance(kind, str) or not kind:
        raise DecodeError(f"manifest document #{index} has no kind", source="manifest")

    metadata = document.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise DecodeError(
            f"manifest document #{index} ({kind}) has invalid metadata", source="manifest"
        )

    name = metadata.get("name")
    if not isinstance(name, str) or not name:
        raise DecodeError(
            f"manifest document #{index} ({kind}) has no metadata.name", source="manifest"
        )

    namespace = metadata.get("namespace") or ""
    if not isinstance(namespace, str):
        raise DecodeError(
            f"manifest document #{index} ({kind}/{name}) has invalid metadata.namespace",
            source="manifest",
        )

    api_version = document.get("apiVersion") or ""
    return K8sObject(
        kind=kind,
        namespace=namespace,
        name=name,
        api_version=str(api_version),
        content=MappingProxyType(dict(document)),
    )


def parse_k8s_objects_from_yaml(manifest: str) -> List[K8sObject]:
    """解析多文档 YAML manifest

    空文档 (例如连续的 ---, 或只有注释的文档) 会被跳过。

    Returns:
        按 manifest 中出现顺序排列的 K8sObject 列表

    Raises:
        DecodeError: YAML 语法错误或文档结构非法
    """
    try:
        documents = list(yaml.safe_load_all(manifest))
    except yaml.YAMLError as e:
        raise DecodeError(f"failed to parse generated manifest: {e}", source="manifest") from e

    objects = []
    for index, document in enumerate(documents):
        if document is None:
            continue
        objects.append(parse_k8s_object(document, index))
    return objects
