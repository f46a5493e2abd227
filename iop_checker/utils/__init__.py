"""
工具模块
"""

from .errors import (
    AggregatedError,
    ClusterAccessError,
    ConfigurationError,
    DecodeError,
    NotReadyError,
    PollTimeoutError,
    ReconciliationMismatchError,
    ResourceNotFoundError,
    UnhealthyError,
    VerifyError,
    VerifyErrorCode,
)
from .retry import RetryPolicy, poll

__all__ = [
    "AggregatedError",
    "ClusterAccessError",
    "ConfigurationError",
    "DecodeError",
    "NotReadyError",
    "PollTimeoutError",
    "ReconciliationMismatchError",
    "ResourceNotFoundError",
    "UnhealthyError",
    "VerifyError",
    "VerifyErrorCode",
    "RetryPolicy",
    "poll",
]
