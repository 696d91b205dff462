"""重试机制"""

import asyncio
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Awaitable, Callable, Optional, List, TypeVar

from .exceptions import AutoHealerError

T = TypeVar('T')
logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """重试配置"""
    max_attempts: int = 2
    delay: float = 0.0
    retryable_errors: Optional[List[type]] = None


class RetryHandler:
    """重试处理器"""

    def __init__(self, config: RetryConfig):
        self.config = config

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """判断是否应该重试"""
        if attempt >= self.config.max_attempts:
            return False

        # 不可恢复的错误（如配置错误）重试也不会成功
        if isinstance(error, AutoHealerError) and not error.recoverable:
            return False

        if self.config.retryable_errors:
            return any(isinstance(error, error_type) for error_type in
                       self.config.retryable_errors)

        if isinstance(error, AutoHealerError):
            return True

        # 默认情况下，网络相关错误可重试
        return isinstance(error, (ConnectionError, TimeoutError, OSError))


def retry_on_error(
        max_attempts: int = 2,
        delay: float = 0.0,
        retryable_errors: Optional[List[type]] = None
):
    """异步函数的重试装饰器，每次重试前等待固定的 delay 秒"""
    config = RetryConfig(
        max_attempts=max_attempts,
        delay=delay,
        retryable_errors=retryable_errors
    )
    retry_handler = RetryHandler(config)

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"retry_on_error 只能用于异步函数: {func.__name__}")

        @wraps(func)
        async def async_wrapper(*args, **kwargs) -> T:
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as error:
                    if not retry_handler.should_retry(error, attempt):
                        logger.warning(
                            f"错误不可重试或达到最大重试次数: {str(error)}")
                        raise

                    logger.warning(
                        f"函数 {func.__name__} 执行失败 (尝试 {attempt}/{config.max_attempts}): "
                        f"{str(error)}，{config.delay:.2f}秒后重试"
                    )
                    await asyncio.sleep(config.delay)

        return async_wrapper

    return decorator
