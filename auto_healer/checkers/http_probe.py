"""HTTP健康端点探测器"""

import asyncio
import time
from typing import Dict, Any, Optional

import aiohttp

from .base import BaseHealthChecker
from ..models.health_check import ProbeResult
from ..utils.exceptions import ProbeError, ErrorCode


class HttpHealthProbe(BaseHealthChecker):
    """HTTP健康端点探测器，每次探测只发送一个带超时的请求"""

    def __init__(self, name: str, config: Dict[str, Any]):
        """
        初始化HTTP探测器

        Args:
            name: 服务名称
            config: 探测配置，包含 url、method、expected_status、timeout、
                headers、follow_redirects
        """
        super().__init__(name, config)

    def validate_config(self) -> bool:
        """
        验证探测配置

        Returns:
            bool: 配置是否有效
        """
        url = self.config.get('url')
        if not isinstance(url, str) or not url.startswith(('http://', 'https://')):
            return False

        method = self.config.get('method', 'GET').upper()
        if method not in ['GET', 'HEAD', 'POST', 'PUT', 'OPTIONS']:
            return False

        expected_status = self.config.get('expected_status', 200)
        statuses = expected_status if isinstance(expected_status, list) else [expected_status]
        for status in statuses:
            if not isinstance(status, int) or status < 100 or status > 599:
                return False

        timeout = self.get_timeout()
        return isinstance(timeout, (int, float)) and timeout > 0

    def _is_status_expected(self, status_code: int) -> bool:
        """
        检查状态码是否在可接受的集合中

        Args:
            status_code: HTTP状态码

        Returns:
            bool: 是否符合期望
        """
        expected_status = self.config.get('expected_status', 200)

        if isinstance(expected_status, list):
            return status_code in expected_status
        return status_code == expected_status

    async def check_health(self) -> ProbeResult:
        """
        探测配置中的健康端点

        Returns:
            ProbeResult: 探测结果
        """
        return await self.check()

    async def check(self, target_url: Optional[str] = None,
                    timeout: Optional[float] = None) -> ProbeResult:
        """
        对目标地址执行一次健康探测，不会抛出异常

        Args:
            target_url: 探测地址，默认使用配置中的url
            timeout: 总超时时间（秒），默认使用配置中的timeout

        Returns:
            ProbeResult: 探测结果
        """
        url = target_url or self.config.get('url')
        total_timeout = timeout if timeout is not None else self.get_timeout()
        method = self.config.get('method', 'GET').upper()

        start_time = time.monotonic()
        status_code = None
        error = None

        try:
            client_timeout = aiohttp.ClientTimeout(total=total_timeout)
            async with aiohttp.ClientSession(timeout=client_timeout) as session:
                async with session.request(
                        method,
                        url,
                        headers=self.config.get('headers') or {},
                        allow_redirects=self.config.get('follow_redirects', True)
                ) as response:
                    status_code = response.status
                    if not self._is_status_expected(response.status):
                        raise ProbeError(
                            f"HTTP状态码不符合期望: {response.status}",
                            ErrorCode.UNEXPECTED_STATUS,
                            target_url=url,
                            status_code=response.status
                        )
                    # 读取响应体，确保在超时范围内完成整个请求
                    await response.read()

        except ProbeError as e:
            error = e.message
        except asyncio.TimeoutError:
            error = f"HTTP请求超时 ({total_timeout}s)"
        except aiohttp.ClientError as e:
            error = f"HTTP客户端错误: {e}"
        except Exception as e:
            error = f"健康探测异常: {e}"

        latency = time.monotonic() - start_time

        return ProbeResult(
            success=error is None,
            latency=latency,
            status_code=status_code,
            error=error,
            target_url=url or ''
        )
