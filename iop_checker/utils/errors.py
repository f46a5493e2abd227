"""
校验错误类型定义

提供结构化的错误处理机制:
- DecodeError: 状态文档 / manifest 格式错误, 不重试
- NotReadyError: 资源暂未就绪, 由 Poller 重试
- UnhealthyError: 组件状态不健康的聚合结果
- PollTimeoutError: Poller 超时, 包装最后一次失败
- ReconciliationMismatchError: 期望对象在集群中不存在
"""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class VerifyErrorCode(Enum):
    """校验错误码枚举"""

    # 解析类错误
    DECODE_ERROR = "DECODE_ERROR"

    # 状态类错误
    UNHEALTHY = "UNHEALTHY"
    NOT_READY = "NOT_READY"

    # 资源类错误
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RECONCILIATION_MISMATCH = "RECONCILIATION_MISMATCH"

    # 超时类错误
    TIMEOUT = "TIMEOUT"

    # 集群访问错误
    API_ERROR = "API_ERROR"

    # 配置类错误
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    UNKNOWN = "UNKNOWN"


class VerifyError(Exception):
    """校验异常基类

    Attributes:
        message: 错误消息
        code: 错误码
        details: 额外的错误详情
    """

    def __init__(
        self,
        message: str,
        code: VerifyErrorCode = VerifyErrorCode.UNKNOWN,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "error": self.message,
            "code": self.code.value,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.value}] {self.message} ({details_str})"
        return f"[{self.code.value}] {self.message}"


class DecodeError(VerifyError):
    """状态文档或 manifest 无法解析

    属于致命错误, Poller 遇到时直接抛出, 不再重试
    """

    def __init__(self, message: str, source: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        all_details = details or {}
        if source:
            all_details["source"] = source
        super().__init__(message, VerifyErrorCode.DECODE_ERROR, all_details)


class UnhealthyError(VerifyError):
    """一个或多个实体 (根状态 / 组件) 不是 HEALTHY

    Attributes:
        errors: 每个不健康实体一条消息
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors), VerifyErrorCode.UNHEALTHY)


class NotReadyError(VerifyError):
    """暂时性错误: 资源尚未创建或尚未就绪, 预期在超时内恢复"""

    def __init__(self, message: str, code: VerifyErrorCode = VerifyErrorCode.NOT_READY,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code, details)


class ResourceNotFoundError(NotReadyError):
    """查询的资源在集群中不存在"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_name: Optional[str] = None,
        namespace: Optional[str] = None,
    ):
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if namespace:
            details["namespace"] = namespace
        if resource_name:
            details["resource_name"] = resource_name
        super().__init__(message, VerifyErrorCode.RESOURCE_NOT_FOUND, details)


class ClusterAccessError(NotReadyError):
    """kubectl 调用失败 (非 NotFound), 例如 API Server 暂不可达"""

    def __init__(self, message: str, cmd: Optional[str] = None):
        details = {"cmd": cmd} if cmd else {}
        super().__init__(message, VerifyErrorCode.API_ERROR, details)


class PollTimeoutError(VerifyError):
    """Poller 在超时时间内未等到成功

    Attributes:
        last_error: 最后一次观察到的失败
        attempts: 总尝试次数
    """

    def __init__(self, timeout: float, last_error: Optional[BaseException], attempts: int = 0):
        self.timeout = timeout
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"timed out after {timeout}s: {last_error}",
            VerifyErrorCode.TIMEOUT,
            {"attempts": attempts},
        )


class ReconciliationMismatchError(VerifyError):
    """生成的期望对象在重试窗口内未在集群中找到

    Attributes:
        mismatches: [(K8sObject, 最后一次查询错误), ...], 按 manifest 顺序
    """

    def __init__(self, mismatches: List[Tuple[Any, Optional[BaseException]]]):
        self.mismatches = list(mismatches)
        descriptions = [
            f"{obj.key}: {err}" for obj, err in self.mismatches
        ]
        super().__init__(
            "in cluster resources does not match with the generated ones: "
            + "; ".join(descriptions),
            VerifyErrorCode.RECONCILIATION_MISMATCH,
        )

    @property
    def kind(self) -> str:
        return self.mismatches[0][0].kind

    @property
    def namespace(self) -> str:
        return self.mismatches[0][0].namespace

    @property
    def name(self) -> str:
        return self.mismatches[0][0].name


class ConfigurationError(VerifyError):
    """配置项取值非法"""

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, VerifyErrorCode.CONFIGURATION_ERROR, details)


class AggregatedError:
    """按顺序累积的失败消息, 每个不健康实体一条

    空集合表示全部健康。
    """

    def __init__(self, errors: Optional[List[str]] = None):
        self._errors: List[str] = list(errors or [])

    def append(self, message: str) -> None:
        self._errors.append(message)

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __repr__(self) -> str:
        return f"AggregatedError({self._errors!r})"

    def to_error(self) -> Optional[UnhealthyError]:
        """为空返回 None, 否则返回 UnhealthyError"""
        if not self._errors:
            return None
        return UnhealthyError(self._errors)
