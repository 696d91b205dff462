"""测试配置验证器"""

import pytest

from auto_healer.utils.config_validator import ConfigValidator
from auto_healer.utils.exceptions import ConfigError


def _service(**overrides):
    config = {
        'service_name': 'web',
        'health_check_url': 'http://localhost:8080/health',
        'remediation_engine': 'container',
    }
    config.update(overrides)
    return config


class TestServiceConfig:
    """测试 service 配置节"""

    def test_valid_minimal(self):
        """测试只包含必需项的配置"""
        ConfigValidator.validate_service_config(_service())

    @pytest.mark.parametrize('field', ['service_name', 'health_check_url', 'remediation_engine'])
    def test_missing_required_field(self, field):
        config = _service()
        del config[field]

        with pytest.raises(ConfigError, match=f"缺少必需的配置项: {field}"):
            ConfigValidator.validate_service_config(config)

    @pytest.mark.parametrize('url', ['ftp://host/health', 'localhost:8080/health', 'http://', 123])
    def test_invalid_url(self, url):
        with pytest.raises(ConfigError, match="health_check_url"):
            ConfigValidator.validate_service_config(_service(health_check_url=url))

    def test_unknown_engine(self):
        with pytest.raises(ConfigError, match="不受支持"):
            ConfigValidator.validate_service_config(_service(remediation_engine='systemd'))

    @pytest.mark.parametrize('field', ['check_interval', 'remediation_timeout',
                                       'cooldown_interval', 'failure_backoff_interval',
                                       'probe_timeout'])
    def test_non_positive_intervals(self, field):
        with pytest.raises(ConfigError, match=f"{field} 必须是正数"):
            ConfigValidator.validate_service_config(_service(**{field: 0}))

    @pytest.mark.parametrize('threshold', [0, -1, 2.5, True, '3'])
    def test_invalid_threshold(self, threshold):
        with pytest.raises(ConfigError, match="failure_threshold"):
            ConfigValidator.validate_service_config(_service(failure_threshold=threshold))

    def test_invalid_method(self):
        with pytest.raises(ConfigError, match="不支持的HTTP方法"):
            ConfigValidator.validate_service_config(_service(method='DELETE'))

    def test_expected_status(self):
        ConfigValidator.validate_service_config(_service(expected_status=[200, 204]))
        ConfigValidator.validate_service_config(_service(expected_status=204))

        with pytest.raises(ConfigError, match="无效的状态码"):
            ConfigValidator.validate_service_config(_service(expected_status=[200, 700]))
        with pytest.raises(ConfigError, match="不能为空"):
            ConfigValidator.validate_service_config(_service(expected_status=[]))


class TestEngineNormalization:
    """测试引擎名称规范化"""

    @pytest.mark.parametrize('name,expected', [
        ('container', 'container'),
        ('Docker', 'container'),
        ('orchestrator', 'orchestrator'),
        ('kubectl', 'orchestrator'),
        (' kubernetes ', 'orchestrator'),
    ])
    def test_aliases(self, name, expected):
        assert ConfigValidator.normalize_engine(name) == expected


class TestOtherSections:
    """测试其他配置节"""

    def test_container_mode(self):
        ConfigValidator.validate_remediation_config('container', {'container': {'mode': 'container'}})

        with pytest.raises(ConfigError, match="mode"):
            ConfigValidator.validate_remediation_config('container', {'container': {'mode': 'swarm'}})

    def test_remediation_section_type(self):
        with pytest.raises(ConfigError):
            ConfigValidator.validate_remediation_config('orchestrator', {'orchestrator': 'web'})

    def test_notifications_queue_size(self):
        ConfigValidator.validate_notifications_config({'queue_size': 10})

        with pytest.raises(ConfigError, match="queue_size"):
            ConfigValidator.validate_notifications_config({'queue_size': 0})

    def test_alert_config(self):
        ConfigValidator.validate_alert_config({'name': 'hook', 'type': 'http', 'url': 'http://x'})
        ConfigValidator.validate_alert_config({'name': 'mail', 'type': 'email',
                                               'smtp_server': 'smtp.example.com'})

        with pytest.raises(ConfigError, match="url"):
            ConfigValidator.validate_alert_config({'name': 'hook', 'type': 'http'})
        with pytest.raises(ConfigError, match="不受支持"):
            ConfigValidator.validate_alert_config({'name': 'sms', 'type': 'sms'})
        with pytest.raises(ConfigError, match="name"):
            ConfigValidator.validate_alert_config({'type': 'http', 'url': 'http://x'})

    def test_global_log_level(self):
        ConfigValidator.validate_global_config({'log_level': 'debug'})

        with pytest.raises(ConfigError, match="log_level"):
            ConfigValidator.validate_global_config({'log_level': 'VERBOSE'})


class TestFullConfig:
    """测试完整配置"""

    def test_valid_config(self):
        config = {
            'global': {'log_level': 'INFO'},
            'service': _service(remediation_engine='kubectl'),
            'remediation': {'orchestrator': {'deployment': 'web'}},
            'notifications': {'queue_size': 50},
            'alerts': [{'name': 'hook', 'type': 'http', 'url': 'http://x'}]
        }

        ConfigValidator.validate_config(config)

    def test_missing_service_section(self):
        with pytest.raises(ConfigError, match="service"):
            ConfigValidator.validate_config({'global': {}})

    def test_root_must_be_dict(self):
        with pytest.raises(ConfigError, match="字典"):
            ConfigValidator.validate_config(['service'])

    def test_alerts_must_be_list(self):
        with pytest.raises(ConfigError, match="列表"):
            ConfigValidator.validate_config({'service': _service(), 'alerts': {'name': 'x'}})
