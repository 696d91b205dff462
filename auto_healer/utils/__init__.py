"""工具模块"""

from .exceptions import (
    AutoHealerError, ConfigError, ProbeError, RemediationError, NotificationError
)
from .log_manager import LogManager, LogLevel, get_logger, configure_logging, log_manager

__all__ = [
    'AutoHealerError', 'ConfigError', 'ProbeError', 'RemediationError',
    'NotificationError', 'LogManager', 'LogLevel', 'get_logger',
    'configure_logging', 'log_manager'
]
