"""自定义异常类和错误代码"""

import traceback
from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime


class ErrorCode(Enum):
    """错误代码枚举"""
    # 通用错误 (1000-1999)
    UNKNOWN_ERROR = 1000
    INITIALIZATION_ERROR = 1001

    # 配置错误 (2000-2999)
    CONFIG_FILE_NOT_FOUND = 2000
    CONFIG_PARSE_ERROR = 2001
    CONFIG_VALIDATION_ERROR = 2002
    CONFIG_RELOAD_ERROR = 2003

    # 健康检查错误 (3000-3999)
    CONNECTION_ERROR = 3001
    TIMEOUT_ERROR = 3002
    UNEXPECTED_STATUS = 3003

    # 告警错误 (4000-4999)
    NOTIFICATION_CONFIG_ERROR = 4000
    NOTIFICATION_SEND_ERROR = 4001
    NOTIFICATION_TEMPLATE_ERROR = 4002
    NOTIFICATION_QUEUE_FULL = 4003

    # 自愈操作错误 (5000-5999)
    REMEDIATION_TOOL_NOT_FOUND = 5000
    REMEDIATION_COMMAND_FAILED = 5001
    REMEDIATION_TIMEOUT = 5002
    REMEDIATION_TARGET_NOT_FOUND = 5003

    # 调度错误 (6000-6999)
    SUPERVISOR_ERROR = 6000
    STATE_PERSISTENCE_ERROR = 6001


class AutoHealerError(Exception):
    """自愈系统基础异常类"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            'error_code': self.error_code.value,
            'error_name': self.error_code.name,
            'message': self.message,
            'details': self.details,
            'recoverable': self.recoverable,
            'timestamp': self.timestamp.isoformat(),
            'cause': str(self.cause) if self.cause else None,
            'traceback': traceback.format_exc() if self.cause else None
        }

    def format_error(self) -> str:
        """格式化错误信息"""
        error_msg = f"[{self.error_code.name}] {self.message}"
        if self.details:
            details_str = ", ".join([f"{k}={v}" for k, v in self.details.items()])
            error_msg += f" (详情: {details_str})"
        if self.cause:
            error_msg += f" (原因: {str(self.cause)})"
        return error_msg


class ConfigError(AutoHealerError):
    """配置相关异常，启动阶段出现时进程以非零状态退出"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIG_VALIDATION_ERROR,
        config_path: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if config_path:
            details['config_path'] = config_path
        kwargs.setdefault('recoverable', False)
        super().__init__(message, error_code, details, **kwargs)


class ProbeError(AutoHealerError):
    """健康探测异常（瞬时错误，只增加失败计数）"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONNECTION_ERROR,
        target_url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if target_url:
            details['target_url'] = target_url
        if status_code is not None:
            details['status_code'] = status_code
        super().__init__(message, error_code, details, **kwargs)
        self.status_code = status_code


class RemediationError(AutoHealerError):
    """自愈操作异常"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.REMEDIATION_COMMAND_FAILED,
        command: Optional[str] = None,
        output: str = '',
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if command:
            details['command'] = command
        super().__init__(message, error_code, details, **kwargs)
        self.output = output


class NotificationError(AutoHealerError):
    """告警发送异常"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.NOTIFICATION_SEND_ERROR,
        alerter_name: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if alerter_name:
            details['alerter_name'] = alerter_name
        super().__init__(message, error_code, details, **kwargs)


class NotificationConfigError(NotificationError):
    """告警器配置异常"""

    def __init__(self, message: str, alerter_name: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            ErrorCode.NOTIFICATION_CONFIG_ERROR,
            alerter_name=alerter_name,
            recoverable=False,
            **kwargs
        )


class SupervisorError(AutoHealerError):
    """监督循环相关异常"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.SUPERVISOR_ERROR,
        **kwargs
    ):
        super().__init__(message, error_code, **kwargs)
