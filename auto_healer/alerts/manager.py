"""告警管理器"""

import asyncio
from typing import Dict, List, Any, Optional, Type

from .base import BaseAlerter
from .email_alerter import EmailAlerter
from .http_alerter import HTTPAlerter
from ..models.health_check import AlertEvent, AlertKind, AlertMessage
from ..utils.error_handler import retry_on_error
from ..utils.exceptions import NotificationConfigError, NotificationError
from ..utils.log_manager import get_logger

ALERTER_TYPES: Dict[str, Type[BaseAlerter]] = {
    'email': EmailAlerter,
    'http': HTTPAlerter,
}

# 告警类型 -> (级别, 标题)
KIND_TITLES = {
    AlertKind.THRESHOLD_BREACHED: ('紧急', '服务连续健康检查失败'),
    AlertKind.RESTARTED: ('通知', '服务已自动重启'),
    AlertKind.RESTART_FAILED: ('紧急', '服务自动重启失败'),
    AlertKind.RECOVERED: ('通知', '服务已恢复正常'),
}

DEFAULT_SUBJECT_TEMPLATE = '[{{severity}}] {{service_name}} {{title}}'

DEFAULT_BODY_TEMPLATE = """服务自愈监控通知

服务名称: {{service_name}}
事件类型: {{title}} ({{kind}})
发生时间: {{timestamp}}
详细信息: {{detail}}

---
此消息由服务自愈监控系统自动发送，请勿回复。
"""


class AlertManager:
    """告警管理器，负责渲染告警消息并投递到所有告警器"""

    def __init__(self, alert_configs: List[Dict[str, Any]],
                 default_recipient: Optional[str] = None,
                 subject_template: Optional[str] = None,
                 body_template: Optional[str] = None):
        """
        初始化告警管理器

        Args:
            alert_configs: 告警器配置列表
            default_recipient: 默认收件人（alert_recipient）
            subject_template: 标题模板
            body_template: 正文模板
        """
        self.alerters: List[BaseAlerter] = []
        self.default_recipient = default_recipient
        self.subject_template = subject_template or DEFAULT_SUBJECT_TEMPLATE
        self.body_template = body_template or DEFAULT_BODY_TEMPLATE
        self.logger = get_logger('alert_manager')

        self._initialize_alerters(alert_configs or [])

    def _initialize_alerters(self, alert_configs: List[Dict[str, Any]]):
        """
        初始化告警器，单个告警器配置错误只记录日志

        Args:
            alert_configs: 告警器配置列表
        """
        for config in alert_configs:
            alerter_type = str(config.get('type', '')).lower()
            alerter_name = config.get('name', f'alerter_{len(self.alerters)}')

            alerter_class = ALERTER_TYPES.get(alerter_type)
            if alerter_class is None:
                self.logger.warning(f"不支持的告警器类型: {alerter_type}")
                continue

            try:
                self.add_alerter(alerter_class(alerter_name, config))
            except NotificationConfigError as e:
                self.logger.error(f"初始化告警器失败 {alerter_name}: {e}")

    def add_alerter(self, alerter: BaseAlerter):
        """
        添加告警器

        Args:
            alerter: 告警器实例
        """
        if not isinstance(alerter, BaseAlerter):
            raise NotificationConfigError(f"告警器必须继承自BaseAlerter: {type(alerter)}")

        self.alerters.append(alerter)
        self.logger.info(f"已添加告警器: {alerter.name} ({alerter.alerter_type})")

    def remove_alerter(self, name: str) -> bool:
        """
        移除告警器

        Args:
            name: 告警器名称

        Returns:
            bool: 是否成功移除
        """
        for i, alerter in enumerate(self.alerters):
            if alerter.name == name:
                self.alerters.pop(i)
                self.logger.info(f"已移除告警器: {name}")
                return True
        return False

    def reload_alerters(self, alert_configs: List[Dict[str, Any]]):
        """
        重新加载告警器配置

        Args:
            alert_configs: 新的告警器配置列表
        """
        old_count = len(self.alerters)
        self.alerters = []
        self._initialize_alerters(alert_configs or [])
        self.logger.info(f"告警配置已重新加载: {old_count} -> {len(self.alerters)} 个告警器")

    def build_message(self, event: AlertEvent, recipient: Optional[str] = None) -> AlertMessage:
        """
        根据告警事件渲染告警消息

        Args:
            event: 告警事件
            recipient: 收件人，默认使用 default_recipient

        Returns:
            AlertMessage: 告警消息
        """
        severity, title = KIND_TITLES[event.kind]
        template_vars = {
            'severity': severity,
            'title': title,
            'kind': event.kind.value,
            'service_name': event.service_name,
            'detail': event.detail,
            'timestamp': event.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
        }
        for key, value in event.metadata.items():
            template_vars[f'metadata_{key}'] = str(value)

        return AlertMessage(
            subject=self.render_template(self.subject_template, template_vars),
            body=self.render_template(self.body_template, template_vars),
            recipient=recipient or self.default_recipient,
            event=event
        )

    @staticmethod
    def render_template(template_str: str, template_vars: Dict[str, str]) -> str:
        """
        使用 {{variable}} 语法渲染模板

        Args:
            template_str: 模板字符串
            template_vars: 模板变量

        Returns:
            str: 渲染后的字符串
        """
        rendered = template_str
        for key, value in template_vars.items():
            rendered = rendered.replace(f'{{{{{key}}}}}', str(value))
        return rendered

    async def send_alert(self, event: AlertEvent,
                         recipient: Optional[str] = None) -> Dict[str, bool]:
        """
        将告警事件并发投递到所有告警器，失败不会向外抛出

        Args:
            event: 告警事件
            recipient: 收件人

        Returns:
            Dict[str, bool]: 告警器名称 -> 是否投递成功
        """
        if not self.alerters:
            self.logger.warning(f"没有配置告警器，跳过告警发送: {event.kind.value}")
            return {}

        # reload_alerters 可能在投递期间替换列表，结果必须与发送时的告警器对应
        alerters = list(self.alerters)
        message = self.build_message(event, recipient)
        results = await asyncio.gather(
            *(self._send_to_alerter(alerter, message) for alerter in alerters)
        )
        outcome = dict(zip([alerter.name for alerter in alerters], results))
        self._log_send_results(outcome, event)
        return outcome

    async def _send_to_alerter(self, alerter: BaseAlerter, message: AlertMessage) -> bool:
        """
        向单个告警器发送消息，失败后立即重试一次，仍失败则放弃

        Args:
            alerter: 告警器实例
            message: 告警消息

        Returns:
            bool: 是否发送成功
        """
        try:
            await self._deliver(alerter, message)
            return True
        except Exception as e:
            self.logger.error(f"告警器 {alerter.name} 发送失败，放弃本条告警: {e}")
            return False

    @retry_on_error(max_attempts=2, retryable_errors=[NotificationError])
    async def _deliver(self, alerter: BaseAlerter, message: AlertMessage):
        if not await alerter.send_alert(message):
            raise NotificationError(f"告警器 {alerter.name} 返回发送失败", alerter_name=alerter.name)

    def _log_send_results(self, outcome: Dict[str, bool], event: AlertEvent):
        """
        记录发送结果

        Args:
            outcome: 发送结果
            event: 告警事件
        """
        success_count = sum(1 for success in outcome.values() if success)
        failed_alerters = [name for name, success in outcome.items() if not success]

        if success_count > 0:
            self.logger.info(
                f"告警发送成功 {success_count}/{len(outcome)} 个告警器 "
                f"(服务: {event.service_name}, 事件: {event.kind.value})"
            )

        if failed_alerters:
            self.logger.warning(
                f"以下告警器发送失败: {', '.join(failed_alerters)} "
                f"(服务: {event.service_name})"
            )

    def get_alerter_count(self) -> int:
        return len(self.alerters)

    def get_alerter_names(self) -> List[str]:
        return [alerter.name for alerter in self.alerters]
