"""配置验证工具"""

from typing import Dict, Any
from urllib.parse import urlparse

from .exceptions import ConfigError

# 配置中允许的引擎名称 -> 规范名称（兼容 docker / kubectl 写法）
ENGINE_ALIASES = {
    'container': 'container',
    'docker': 'container',
    'orchestrator': 'orchestrator',
    'kubectl': 'orchestrator',
    'kubernetes': 'orchestrator',
}

SUPPORTED_ALERT_TYPES = ['email', 'http']


class ConfigValidator:
    """配置验证器"""

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> None:
        """
        验证完整配置

        Args:
            config: 配置字典

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(config, dict):
            raise ConfigError("配置文件根节点必须是字典类型")

        if 'global' in config:
            ConfigValidator.validate_global_config(config['global'])

        if 'service' not in config:
            raise ConfigError("缺少必需的配置节: service")
        ConfigValidator.validate_service_config(config['service'])

        engine = ConfigValidator.normalize_engine(config['service']['remediation_engine'])
        ConfigValidator.validate_remediation_config(engine, config.get('remediation') or {})

        if 'notifications' in config:
            ConfigValidator.validate_notifications_config(config['notifications'])

        if 'alerts' in config:
            if not isinstance(config['alerts'], list):
                raise ConfigError("alerts配置必须是列表类型")
            for alert_config in config['alerts']:
                ConfigValidator.validate_alert_config(alert_config)

    @staticmethod
    def normalize_engine(engine: Any) -> str:
        """
        将引擎名称规范化为 container 或 orchestrator

        Raises:
            ConfigError: 不支持的引擎
        """
        name = str(engine).strip().lower()
        if name not in ENGINE_ALIASES:
            raise ConfigError(
                f"remediation_engine '{engine}' 不受支持。支持的引擎: {sorted(ENGINE_ALIASES)}")
        return ENGINE_ALIASES[name]

    @staticmethod
    def validate_service_config(config: Dict[str, Any]) -> None:
        """
        验证被监控服务的配置

        Args:
            config: service配置节

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(config, dict):
            raise ConfigError("service配置必须是字典类型")

        required_fields = ['service_name', 'health_check_url', 'remediation_engine']
        for field in required_fields:
            if not config.get(field):
                raise ConfigError(f"service 缺少必需的配置项: {field}")

        if not isinstance(config['service_name'], str):
            raise ConfigError("service_name 必须是字符串")

        url = config['health_check_url']
        parsed = urlparse(url) if isinstance(url, str) else None
        if parsed is None or parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ConfigError(f"health_check_url 不是有效的HTTP(S)地址: {url}")

        ConfigValidator.normalize_engine(config['remediation_engine'])

        for field in ['check_interval', 'remediation_timeout', 'cooldown_interval',
                      'failure_backoff_interval', 'probe_timeout']:
            value = config.get(field)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"{field} 必须是正数")

        threshold = config.get('failure_threshold')
        if threshold is not None:
            if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold <= 0:
                raise ConfigError("failure_threshold 必须是正整数")

        method = str(config.get('method', 'GET')).upper()
        if method not in ['GET', 'HEAD', 'POST', 'PUT', 'OPTIONS']:
            raise ConfigError(f"不支持的HTTP方法: {method}")

        expected_status = config.get('expected_status', 200)
        statuses = expected_status if isinstance(expected_status, list) else [expected_status]
        if not statuses:
            raise ConfigError("expected_status 不能为空")
        for status in statuses:
            if isinstance(status, bool) or not isinstance(status, int) or not 100 <= status <= 599:
                raise ConfigError(f"expected_status 包含无效的状态码: {status}")

        recipient = config.get('alert_recipient')
        if recipient is not None and not isinstance(recipient, str):
            raise ConfigError("alert_recipient 必须是字符串")

    @staticmethod
    def validate_remediation_config(engine: str, config: Dict[str, Any]) -> None:
        """
        验证自愈引擎的专属配置

        Args:
            engine: 规范化后的引擎名称
            config: remediation配置节

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(config, dict):
            raise ConfigError("remediation配置必须是字典类型")

        section = config.get(engine) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"remediation.{engine} 配置必须是字典类型")

        if engine == 'container':
            mode = section.get('mode', 'compose')
            if mode not in ('compose', 'container'):
                raise ConfigError(f"remediation.container.mode 必须是 compose 或 container: {mode}")

    @staticmethod
    def validate_notifications_config(config: Dict[str, Any]) -> None:
        """
        验证通知配置

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(config, dict):
            raise ConfigError("notifications配置必须是字典类型")

        queue_size = config.get('queue_size')
        if queue_size is not None:
            if isinstance(queue_size, bool) or not isinstance(queue_size, int) or queue_size <= 0:
                raise ConfigError("notifications.queue_size 必须是正整数")

    @staticmethod
    def validate_alert_config(alert_config: Dict[str, Any]) -> None:
        """
        验证告警配置

        Args:
            alert_config: 告警配置

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(alert_config, dict):
            raise ConfigError("告警配置必须是字典类型")

        for field in ['name', 'type']:
            if field not in alert_config:
                raise ConfigError(f"告警配置缺少必需的配置项: {field}")

        alert_type = str(alert_config['type']).lower()
        if alert_type not in SUPPORTED_ALERT_TYPES:
            raise ConfigError(
                f"告警 '{alert_config['name']}' 的类型 '{alert_type}' 不受支持。"
                f"支持的类型: {SUPPORTED_ALERT_TYPES}")

        if alert_type == 'http' and 'url' not in alert_config:
            raise ConfigError(f"告警 '{alert_config['name']}' 缺少必需的配置项: url")

        if alert_type == 'email' and 'smtp_server' not in alert_config:
            raise ConfigError(f"告警 '{alert_config['name']}' 缺少必需的配置项: smtp_server")

    @staticmethod
    def validate_global_config(global_config: Dict[str, Any]) -> None:
        """
        验证全局配置

        Args:
            global_config: 全局配置

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(global_config, dict):
            raise ConfigError("全局配置必须是字典类型")

        log_level = global_config.get('log_level')
        if log_level is not None:
            valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
            if str(log_level).upper() not in valid_levels:
                raise ConfigError(f"log_level 必须是以下值之一: {valid_levels}")
