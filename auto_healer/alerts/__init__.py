"""告警模块"""

from .base import BaseAlerter
from .email_alerter import EmailAlerter
from .http_alerter import HTTPAlerter
from .manager import AlertManager
from .notifier import Notifier

__all__ = [
    'BaseAlerter',
    'AlertManager',
    'EmailAlerter',
    'HTTPAlerter',
    'Notifier'
]
