"""
重试机制模块

基于 Tenacity 库提供固定间隔的有界重试 (Poller):
- 立即执行一次探测, 成功即返回
- 失败后等待 delay, 再次探测, 直到成功或自首次尝试起超过 timeout
- 超时抛出 PollTimeoutError, 包装最后一次失败
- 不做指数退避, 不加抖动, 同步阻塞调用方
"""

from dataclasses import dataclass
from typing import Any, Callable, Tuple, Type
import logging

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_delay,
    wait_fixed,
)

from .errors import ConfigurationError, DecodeError, PollTimeoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """单个调用点的重试策略

    Attributes:
        timeout: 总超时时间 (秒)
        delay: 两次尝试之间的固定间隔 (秒)
    """

    timeout: float
    delay: float

    def __post_init__(self):
        if self.timeout <= 0:
            raise ConfigurationError("retry timeout must be positive", field="timeout", value=self.timeout)
        if self.delay < 0:
            raise ConfigurationError("retry delay must not be negative", field="delay", value=self.delay)


def poll(
    probe: Callable[[], Any],
    policy: RetryPolicy,
    fatal: Tuple[Type[BaseException], ...] = (DecodeError,),
) -> Any:
    """重复调用 probe 直到成功或超时

    Args:
        probe: 无参探测函数, 抛出异常表示失败
        policy: 重试策略 (每个调用点显式传入)
        fatal: 不重试的异常类型, 首次出现即原样抛出

    Returns:
        probe 成功时的返回值

    Raises:
        PollTimeoutError: 超时, last_error 为最后一次失败
        fatal 中的异常: 原样抛出
        KeyboardInterrupt / SystemExit: 原样抛出, 不重试

    Example:
        poll(lambda: probe.get_service("istio-system", "istiod"),
             RetryPolicy(timeout=30, delay=0.1))
    """
    retryer = Retrying(
        stop=stop_after_delay(policy.timeout),
        wait=wait_fixed(policy.delay),
        retry=retry_if_exception_type(Exception) & retry_if_not_exception_type(fatal),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    try:
        return retryer(probe)
    except RetryError as e:
        last_attempt = e.last_attempt
        last_error = last_attempt.exception()
        raise PollTimeoutError(
            policy.timeout, last_error, last_attempt.attempt_number
        ) from last_error
