"""
安装状态聚合

流程:
1. 从 IstioOperator CR 中取出 status 字段 (缺失表示 "尚未上报")
2. 解析为 InstallStatusReport (格式错误 -> DecodeError, 不重试)
3. 聚合根状态与各组件状态, 每个非 HEALTHY 实体记录一条错误

check_install_status 把以上步骤包在 Poller 中, 容忍安装过程中的最终一致性延迟。
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from ..collectors.probe import IOP_GVR, ClusterResourceProbe
from ..utils.errors import (
    AggregatedError,
    DecodeError,
    NotReadyError,
    PollTimeoutError,
    UnhealthyError,
    VerifyError,
)
from ..utils.retry import RetryPolicy, poll
from .models import InstallStatus, InstallStatusReport

logger = logging.getLogger(__name__)

Payload = Union[str, bytes, Mapping[str, Any]]


@dataclass(frozen=True)
class StatusTarget:
    """待检查的 IstioOperator CR 以及 operator 自身的位置"""
    namespace: str = "istio-system"
    name: str = "test-istiocontrolplane"
    operator_namespace: str = "istio-operator"
    operator_service: str = "istio-operator"
    operator_selector: str = "name=istio-operator"
    log_tail: int = 10000000


def load_document(payload: Payload, source: str = "status") -> Any:
    """把 JSON / YAML 文本或已解析的映射统一为 Python 对象"""
    if isinstance(payload, Mapping):
        return payload
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"{source} payload is not valid UTF-8: {e}", source=source) from e
    if not isinstance(payload, str):
        raise DecodeError(
            f"unsupported {source} payload type: {type(payload).__name__}", source=source
        )
    try:
        # JSON 是 YAML 的子集
        return yaml.safe_load(payload)
    except yaml.YAMLError as e:
        raise DecodeError(f"failed to parse {source} payload: {e}", source=source) from e


def decode_status_document(payload: Payload) -> InstallStatusReport:
    """解析状态文档本身 ({status, componentStatus, ...})

    Raises:
        DecodeError: 结构非法
    """
    document = load_document(payload)
    if not isinstance(document, Mapping):
        raise DecodeError("istioOperator status is not an object", source="status")
    try:
        return InstallStatusReport.model_validate(dict(document))
    except ValidationError as e:
        raise DecodeError(f"failed to unmarshal istioOperator status: {e}", source="status") from e


def decode_install_status(resource: Payload) -> Optional[InstallStatusReport]:
    """从完整的 IstioOperator CR 中解析状态

    Returns:
        InstallStatusReport, 或 None (CR 中还没有 status 字段)

    Raises:
        DecodeError: CR 或 status 结构非法
    """
    document = load_document(resource, source="istioOperator")
    if not isinstance(document, Mapping):
        raise DecodeError("istioOperator resource is not an object", source="istioOperator")

    raw_status = document.get("status")
    if raw_status is None:
        return None
    if not isinstance(raw_status, Mapping):
        raise DecodeError("istioOperator status is not an object", source="status")
    return decode_status_document(raw_status)


def aggregate(
    root_status: InstallStatus,
    components: Mapping[str, InstallStatus],
) -> AggregatedError:
    """聚合根状态和组件状态

    组件按名称字典序遍历, 保证错误顺序稳定。

    Returns:
        AggregatedError, 为空表示全部健康
    """
    errs = AggregatedError()
    if root_status != InstallStatus.HEALTHY:
        errs.append(f"got IstioOperator status: {_status_name(root_status)}")

    for name in sorted(components):
        status = components[name]
        if status != InstallStatus.HEALTHY:
            errs.append(f"got component: {name} status: {_status_name(status)}")
    return errs


def _status_name(status: Any) -> str:
    return status.value if isinstance(status, InstallStatus) else str(status)


def check_install_status(
    probe: ClusterResourceProbe,
    policy: RetryPolicy,
    target: StatusTarget = StatusTarget(),
) -> InstallStatusReport:
    """轮询 IstioOperator CR 状态直到全部健康

    Args:
        probe: 集群查询能力
        policy: 状态轮询的重试策略
        target: CR 与 operator 的位置

    Returns:
        最终健康的状态报告

    Raises:
        DecodeError: status 格式非法 (立即抛出)
        UnhealthyError: 超时后仍有不健康实体
        PollTimeoutError: 超时且最后一次失败不是 "不健康" (如资源不存在)
    """
    logger.info("checking IstioOperator CR status")

    def _attempt() -> InstallStatusReport:
        try:
            resource = probe.get_custom_resource(IOP_GVR, target.namespace, target.name)
        except VerifyError as e:
            raise NotReadyError(f"failed to get istioOperator resource: {e}") from e

        report = decode_install_status(resource)
        if report is None:
            _check_operator_ready(probe, target)
            raise NotReadyError("status not found from the istioOperator resource")

        unhealthy = aggregate(report.status, report.components).to_error()
        if unhealthy is not None:
            raise unhealthy
        return report

    try:
        return poll(_attempt, policy)
    except PollTimeoutError as e:
        _log_operator_logs(probe, target)
        if isinstance(e.last_error, UnhealthyError):
            raise UnhealthyError(e.last_error.errors) from e
        raise


def _check_operator_ready(probe: ClusterResourceProbe, target: StatusTarget) -> None:
    """status 还未上报时, 区分 "operator 未就绪" 和 "operator 就绪但尚未写入状态" """
    try:
        probe.get_service(target.operator_namespace, target.operator_service)
    except VerifyError as e:
        raise NotReadyError(f"istio operator svc is not ready: {e}") from e

    try:
        probe.check_pods_ready(target.operator_namespace, target.operator_selector)
    except VerifyError as e:
        raise NotReadyError(f"istio operator pod is not ready: {e}") from e


def _log_operator_logs(probe: ClusterResourceProbe, target: StatusTarget) -> None:
    try:
        content = probe.get_pod_logs(
            target.operator_namespace, target.operator_selector, tail=target.log_tail
        )
    except VerifyError as e:
        logger.warning("unable to get logs from istio-operator: %s", e)
        return
    logger.info("operator log: %s", content)


def format_report(report: InstallStatusReport) -> str:
    """紧凑的 JSON 表示, 便于日志输出"""
    return json.dumps(
        {
            "status": report.status.value,
            "componentStatus": {k: v.value for k, v in sorted(report.components.items())},
        },
        sort_keys=True,
    )
