"""自愈监控的运行参数"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from .health_check import RemediationEngine
from ..utils.config_validator import ConfigValidator


@dataclass
class HealerSettings:
    """监督循环使用的类型化配置"""
    service_name: str
    health_check_url: str
    remediation_engine: RemediationEngine
    check_interval: float = 10
    failure_threshold: int = 3
    remediation_timeout: float = 30
    cooldown_interval: float = 60
    failure_backoff_interval: float = 60
    probe_timeout: float = 5
    alert_recipient: Optional[str] = None
    method: str = 'GET'
    expected_status: List[int] = field(default_factory=lambda: [200])
    headers: Dict[str, str] = field(default_factory=dict)
    follow_redirects: bool = True
    remediation_options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'HealerSettings':
        """
        从完整配置字典创建运行参数

        Args:
            config: 已加载的配置字典（包含service、remediation等节）

        Returns:
            HealerSettings: 运行参数

        Raises:
            ConfigError: 配置验证失败
        """
        ConfigValidator.validate_config(config)

        service = config['service']
        engine_name = ConfigValidator.normalize_engine(service['remediation_engine'])
        remediation_section = config.get('remediation') or {}

        expected_status = service.get('expected_status', 200)
        if not isinstance(expected_status, list):
            expected_status = [expected_status]

        return cls(
            service_name=service['service_name'],
            health_check_url=service['health_check_url'],
            remediation_engine=RemediationEngine(engine_name),
            check_interval=service.get('check_interval', 10),
            failure_threshold=service.get('failure_threshold', 3),
            remediation_timeout=service.get('remediation_timeout', 30),
            cooldown_interval=service.get('cooldown_interval', 60),
            failure_backoff_interval=service.get('failure_backoff_interval', 60),
            probe_timeout=service.get('probe_timeout', 5),
            alert_recipient=service.get('alert_recipient'),
            method=str(service.get('method', 'GET')).upper(),
            expected_status=list(expected_status),
            headers=dict(service.get('headers') or {}),
            follow_redirects=service.get('follow_redirects', True),
            remediation_options=dict(remediation_section.get(engine_name) or {})
        )

    def probe_config(self) -> Dict[str, Any]:
        """健康探测器使用的配置"""
        return {
            'url': self.health_check_url,
            'method': self.method,
            'expected_status': self.expected_status,
            'timeout': self.probe_timeout,
            'headers': self.headers,
            'follow_redirects': self.follow_redirects
        }

    def remediation_config(self) -> Dict[str, Any]:
        """自愈器使用的配置"""
        config = dict(self.remediation_options)
        config['timeout'] = self.remediation_timeout
        return config
