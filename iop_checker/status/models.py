"""
IstioOperator 安装状态数据模型

状态文档形如:
    {"status": "HEALTHY",
     "componentStatus": {"Pilot": {"status": "HEALTHY"}, ...}}

未知字段一律保留语义上的 "忽略" (extra="ignore"), 以兼容安装器新版本新增的字段。
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InstallStatus(str, Enum):
    """安装健康状态枚举 (与安装器 API 的 InstallStatus.Status 对应)"""
    NONE = "NONE"
    UPDATING = "UPDATING"
    RECONCILING = "RECONCILING"
    HEALTHY = "HEALTHY"
    ERROR = "ERROR"
    ACTION_REQUIRED = "ACTION_REQUIRED"
    UNKNOWN = "UNKNOWN"


# protobuf JSON 编码器可能输出数值枚举; 未知数值按 UNKNOWN 处理
_NUMERIC_STATUS = {
    0: InstallStatus.NONE,
    1: InstallStatus.UPDATING,
    2: InstallStatus.RECONCILING,
    3: InstallStatus.HEALTHY,
    4: InstallStatus.ERROR,
    5: InstallStatus.ACTION_REQUIRED,
}


def _coerce_status(value: Any) -> Any:
    if value is None:
        return InstallStatus.NONE
    if isinstance(value, int) and not isinstance(value, bool):
        return _NUMERIC_STATUS.get(value, InstallStatus.UNKNOWN)
    return value


class ComponentStatus(BaseModel):
    """单个组件的状态"""

    model_config = ConfigDict(extra="ignore", frozen=True)

    status: InstallStatus = InstallStatus.NONE

    @field_validator("status", mode="before")
    @classmethod
    def _status_from_wire(cls, value: Any) -> Any:
        return _coerce_status(value)


class InstallStatusReport(BaseModel):
    """根状态 + 组件状态映射

    解析后不可变; 组件名不能为空。
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    status: InstallStatus = InstallStatus.NONE
    component_status: Mapping[str, ComponentStatus] = Field(
        default_factory=dict, alias="componentStatus", validate_default=True
    )

    @field_validator("status", mode="before")
    @classmethod
    def _status_from_wire(cls, value: Any) -> Any:
        return _coerce_status(value)

    @field_validator("component_status", mode="before")
    @classmethod
    def _components_from_wire(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            # null 组件等价于空对象
            return {k: ({} if v is None else v) for k, v in value.items()}
        return value

    @field_validator("component_status")
    @classmethod
    def _no_empty_names(cls, value: Mapping[str, ComponentStatus]) -> Mapping[str, ComponentStatus]:
        for name in value:
            if not name or not name.strip():
                raise ValueError("component name must not be empty")
        return MappingProxyType(dict(value))

    @property
    def components(self) -> Mapping[str, InstallStatus]:
        """组件名 -> 状态 的只读视图"""
        return MappingProxyType(
            {name: cs.status for name, cs in self.component_status.items()}
        )
