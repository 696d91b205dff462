"""邮件告警器实现"""

import re
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr
from typing import Dict, Any, List

import aiosmtplib

from .base import BaseAlerter
from ..models.health_check import AlertMessage
from ..utils.exceptions import NotificationConfigError, NotificationError
from ..utils.log_manager import get_logger

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


class EmailAlerter(BaseAlerter):
    """邮件告警器，通过SMTP协议发送邮件告警"""

    def __init__(self, name: str, config: Dict[str, Any]):
        """
        初始化邮件告警器

        Args:
            name: 告警器名称
            config: 告警器配置，未配置 to_emails 时使用消息中的收件人
        """
        super().__init__(name, config)
        self.logger = get_logger(f'alerter.email.{self.name}')

        # SMTP配置
        self.smtp_server = config.get('smtp_server', '')
        self.smtp_port = config.get('smtp_port', 587)
        self.username = config.get('username')
        self.password = config.get('password')
        self.use_tls = config.get('use_tls', False)
        self.start_tls = config.get('start_tls', not self.use_tls)

        # 邮件配置
        self.from_email = config.get('from_email', self.username or '')
        self.from_name = config.get('from_name', '服务自愈监控')
        self.to_emails: List[str] = list(config.get('to_emails') or [])
        self.cc_emails: List[str] = list(config.get('cc_emails') or [])

        if not self.validate_config():
            raise NotificationConfigError(f"邮件告警器配置无效: {name}", alerter_name=name)

    def validate_config(self) -> bool:
        """
        验证配置参数是否有效

        Returns:
            bool: 配置是否有效
        """
        if not self.smtp_server:
            self.logger.error(f"邮件告警器 {self.name} 缺少SMTP服务器配置")
            return False

        if not self.from_email:
            self.logger.error(f"邮件告警器 {self.name} 缺少发件人邮箱配置")
            return False

        if bool(self.username) != bool(self.password):
            self.logger.error(f"邮件告警器 {self.name} 用户名和密码必须同时配置")
            return False

        for email in self.to_emails + self.cc_emails + [self.from_email]:
            if not self._is_valid_email(email):
                self.logger.error(f"邮件告警器 {self.name} 邮箱格式无效: {email}")
                return False

        if not isinstance(self.smtp_port, int) or self.smtp_port <= 0:
            self.logger.error(f"邮件告警器 {self.name} SMTP端口无效: {self.smtp_port}")
            return False

        if self.use_tls and self.start_tls:
            self.logger.error(f"邮件告警器 {self.name} 不能同时启用 use_tls 和 start_tls")
            return False

        return True

    @staticmethod
    def _is_valid_email(email: str) -> bool:
        return EMAIL_PATTERN.match(email or '') is not None

    def _recipients(self, message: AlertMessage) -> List[str]:
        if self.to_emails:
            return self.to_emails
        if message.recipient:
            return [message.recipient]
        return []

    async def send_alert(self, message: AlertMessage) -> bool:
        """
        发送告警邮件

        Args:
            message: 告警消息对象

        Returns:
            bool: 发送是否成功

        Raises:
            NotificationConfigError: 没有可用的收件人
            NotificationError: SMTP发送失败
        """
        recipients = self._recipients(message)
        if not recipients:
            raise NotificationConfigError(
                f"邮件告警器 {self.name} 没有可用的收件人，请配置 to_emails 或 alert_recipient",
                alerter_name=self.name)

        email_msg = self._create_email_message(message, recipients)

        smtp_kwargs = {
            'hostname': self.smtp_server,
            'port': self.smtp_port,
            'timeout': self.get_timeout(),
            'use_tls': self.use_tls,
            'start_tls': self.start_tls
        }
        if self.username:
            smtp_kwargs['username'] = self.username
            smtp_kwargs['password'] = self.password

        try:
            await aiosmtplib.send(email_msg, **smtp_kwargs)
        except Exception as e:
            self.logger.error(f"SMTP发送失败: {e}")
            raise NotificationError(f"SMTP发送失败: {e}", alerter_name=self.name, cause=e)

        self.logger.info(f"邮件告警发送成功: {self.from_email} -> {', '.join(recipients)}")
        return True

    def _create_email_message(self, message: AlertMessage, recipients: List[str]) -> MIMEMultipart:
        """
        创建邮件消息

        Args:
            message: 告警消息
            recipients: 收件人列表

        Returns:
            MIMEMultipart: 邮件消息对象
        """
        email_msg = MIMEMultipart()
        email_msg['From'] = formataddr((self.from_name, self.from_email))
        email_msg['To'] = ', '.join(recipients)

        if self.cc_emails:
            email_msg['Cc'] = ', '.join(self.cc_emails)

        email_msg['Subject'] = message.subject
        email_msg.attach(MIMEText(message.body, 'plain', 'utf-8'))

        return email_msg

    def get_config_summary(self) -> Dict[str, Any]:
        """
        获取配置摘要（用于调试和监控）

        Returns:
            Dict[str, Any]: 配置摘要
        """
        return {
            'name': self.name,
            'type': 'email',
            'smtp_server': self.smtp_server,
            'smtp_port': self.smtp_port,
            'from_email': self.from_email,
            'to_emails_count': len(self.to_emails),
            'use_tls': self.use_tls,
            'start_tls': self.start_tls,
            'timeout': self.get_timeout()
        }
