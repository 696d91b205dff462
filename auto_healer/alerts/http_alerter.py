"""HTTP（Webhook）告警器实现"""

import asyncio
import json
from typing import Dict, Any
from urllib.parse import urlparse

import aiohttp

from .base import BaseAlerter
from ..models.health_check import AlertMessage
from ..utils.exceptions import NotificationConfigError, NotificationError, ErrorCode
from ..utils.log_manager import get_logger


class HTTPAlerter(BaseAlerter):
    """HTTP告警器，通过Webhook请求发送告警消息"""

    def __init__(self, name: str, config: Dict[str, Any]):
        """
        初始化HTTP告警器

        Args:
            name: 告警器名称
            config: 告警器配置
        """
        super().__init__(name, config)
        self.logger = get_logger(f'alerter.http.{self.name}')

        self.url = config.get('url', '')
        self.method = config.get('method', 'POST').upper()
        self.headers = config.get('headers', {})
        self.template = config.get('template', '')

        if not self.validate_config():
            raise NotificationConfigError(f"HTTP告警器配置无效: {name}", alerter_name=name)

    def validate_config(self) -> bool:
        """
        验证配置参数是否有效

        Returns:
            bool: 配置是否有效
        """
        if not self.url:
            self.logger.error(f"HTTP告警器 {self.name} 缺少URL配置")
            return False

        parsed_url = urlparse(self.url)
        if parsed_url.scheme not in ('http', 'https') or not parsed_url.netloc:
            self.logger.error(f"HTTP告警器 {self.name} URL格式无效: {self.url}")
            return False

        valid_methods = ['POST', 'PUT', 'PATCH']
        if self.method not in valid_methods:
            self.logger.error(
                f"HTTP告警器 {self.name} 不支持的HTTP方法: {self.method}, "
                f"支持的方法: {valid_methods}"
            )
            return False

        if self.template is not None and not isinstance(self.template, str):
            self.logger.error(f"HTTP告警器 {self.name} 模板必须是字符串")
            return False

        return True

    async def send_alert(self, message: AlertMessage) -> bool:
        """
        发送告警消息

        Args:
            message: 告警消息对象

        Returns:
            bool: 发送是否成功

        Raises:
            NotificationError: 请求失败或返回非2xx状态码
        """
        request_data = self._prepare_request_data(message)
        timeout = aiohttp.ClientTimeout(total=self.get_timeout())
        connector = aiohttp.TCPConnector(ssl=self.config.get('ssl_verify', True))

        try:
            async with aiohttp.ClientSession(timeout=timeout, connector=connector) as session:
                async with session.request(
                        method=self.method,
                        url=self.url,
                        headers=self.headers,
                        **request_data
                ) as response:
                    if 200 <= response.status < 300:
                        self.logger.info(
                            f"HTTP告警发送成功: {self.url}, 状态码: {response.status}")
                        return True

                    response_text = await response.text()
                    raise NotificationError(
                        f"HTTP告警返回状态码 {response.status}: {response_text[:200]}",
                        alerter_name=self.name
                    )

        except aiohttp.ClientError as e:
            self.logger.error(f"HTTP告警器 {self.name} 请求失败: {e}")
            raise NotificationError(f"HTTP请求失败: {e}", alerter_name=self.name, cause=e)
        except asyncio.TimeoutError:
            self.logger.error(f"HTTP告警器 {self.name} 请求超时")
            raise NotificationError("HTTP请求超时", alerter_name=self.name)

    def _prepare_request_data(self, message: AlertMessage) -> Dict[str, Any]:
        """
        准备HTTP请求数据

        Args:
            message: 告警消息

        Returns:
            Dict[str, Any]: 请求参数
        """
        if not self.template:
            return {'json': self._create_default_payload(message)}

        rendered_content = self._render_template(self.template, message)
        try:
            return {'json': json.loads(rendered_content)}
        except json.JSONDecodeError:
            return {'data': rendered_content}

    def _template_vars(self, message: AlertMessage) -> Dict[str, str]:
        event = message.event
        return {
            'subject': message.subject,
            'body': message.body,
            'recipient': message.recipient or '',
            'kind': event.kind.value,
            'service_name': event.service_name,
            'detail': event.detail,
            'timestamp': event.timestamp.isoformat()
        }

    def _render_template(self, template_str: str, message: AlertMessage) -> str:
        """
        渲染 {{variable}} 形式的消息模板

        Args:
            template_str: 模板字符串
            message: 告警消息

        Returns:
            str: 渲染后的消息

        Raises:
            NotificationError: JSON模板渲染后格式无效
        """
        is_json_template = template_str.strip().startswith('{') and template_str.strip().endswith('}')

        rendered = template_str
        for key, value in self._template_vars(message).items():
            safe_value = str(value)
            if is_json_template:
                # 去掉 json.dumps 结果两侧的引号，只保留转义后的内容
                safe_value = json.dumps(safe_value, ensure_ascii=False)[1:-1]
            rendered = rendered.replace(f'{{{{{key}}}}}', safe_value)

        if is_json_template:
            try:
                json.loads(rendered)
            except json.JSONDecodeError as e:
                self.logger.error(f"渲染后的JSON格式无效: {e}")
                raise NotificationError(
                    f"渲染后的JSON格式无效: {e}",
                    ErrorCode.NOTIFICATION_TEMPLATE_ERROR,
                    alerter_name=self.name
                )

        return rendered

    def _create_default_payload(self, message: AlertMessage) -> Dict[str, Any]:
        """
        创建默认的JSON负载

        Args:
            message: 告警消息

        Returns:
            Dict[str, Any]: JSON负载
        """
        event = message.event
        return {
            'subject': message.subject,
            'body': message.body,
            'recipient': message.recipient,
            'kind': event.kind.value,
            'service_name': event.service_name,
            'detail': event.detail,
            'timestamp': event.timestamp.isoformat(),
            'metadata': event.metadata
        }

    def get_config_summary(self) -> Dict[str, Any]:
        """
        获取配置摘要（用于调试和监控）

        Returns:
            Dict[str, Any]: 配置摘要
        """
        return {
            'name': self.name,
            'type': 'http',
            'url': self.url,
            'method': self.method,
            'timeout': self.get_timeout(),
            'has_template': bool(self.template),
            'headers_count': len(self.headers)
        }
