"""配置管理器测试"""

import os
import time

import pytest
import yaml

from auto_healer.models.health_check import RemediationEngine
from auto_healer.services.config_manager import ConfigManager
from auto_healer.utils.exceptions import ConfigError, ErrorCode


VALID_CONFIG = {
    'global': {
        'log_level': 'DEBUG',
        'log_file': 'logs/healer.log',
        'max_log_size': 1024,
        'log_backup_count': 2
    },
    'service': {
        'service_name': 'web',
        'health_check_url': 'http://localhost:8080/health',
        'remediation_engine': 'docker',
        'check_interval': 5,
        'alert_recipient': 'ops@example.com'
    },
    'remediation': {
        'container': {'mode': 'compose', 'compose_file': 'docker-compose.yml'}
    },
    'notifications': {'queue_size': 20},
    'alerts': [
        {'name': 'hook', 'type': 'http', 'url': 'http://localhost:9000/hook'}
    ]
}


@pytest.fixture
def config_file(tmp_path):
    """写入有效配置文件"""
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump(VALID_CONFIG, allow_unicode=True), encoding='utf-8')
    return path


class TestConfigManager:
    """配置管理器测试类"""

    def test_load_valid_config(self, config_file):
        """测试加载有效配置"""
        manager = ConfigManager(str(config_file))
        config = manager.load_config()

        assert config['service']['service_name'] == 'web'
        assert manager.last_modified == os.path.getmtime(config_file)
        assert manager.get_service_config()['check_interval'] == 5
        assert manager.get_notifications_config() == {'queue_size': 20}
        assert len(manager.get_alerts_config()) == 1

    def test_get_settings(self, config_file):
        manager = ConfigManager(str(config_file))
        manager.load_config()

        settings = manager.get_settings()

        assert settings.service_name == 'web'
        assert settings.remediation_engine == RemediationEngine.CONTAINER_RESTART
        assert settings.check_interval == 5
        assert settings.alert_recipient == 'ops@example.com'

    def test_missing_file(self, tmp_path):
        manager = ConfigManager(str(tmp_path / 'missing.yaml'))

        with pytest.raises(ConfigError) as exc_info:
            manager.load_config()

        assert exc_info.value.error_code == ErrorCode.CONFIG_FILE_NOT_FOUND
        assert exc_info.value.recoverable is False

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'broken.yaml'
        path.write_text("service: [unclosed\n", encoding='utf-8')

        with pytest.raises(ConfigError) as exc_info:
            ConfigManager(str(path)).load_config()

        assert exc_info.value.error_code == ErrorCode.CONFIG_PARSE_ERROR

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text("", encoding='utf-8')

        with pytest.raises(ConfigError, match="配置文件为空"):
            ConfigManager(str(path)).load_config()

    def test_missing_required_key(self, tmp_path):
        config = yaml.safe_load(yaml.safe_dump(VALID_CONFIG))
        del config['service']['remediation_engine']
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump(config), encoding='utf-8')

        with pytest.raises(ConfigError, match="remediation_engine"):
            ConfigManager(str(path)).load_config()

    def test_logging_config_cli_override(self, config_file):
        """测试命令行参数覆盖日志配置"""
        manager = ConfigManager(str(config_file))
        manager.load_config()

        from_file = manager.get_logging_config()
        assert from_file == {
            'log_level': 'DEBUG',
            'log_file': 'logs/healer.log',
            'max_file_size': 1024,
            'backup_count': 2
        }

        overridden = manager.get_logging_config(log_level='ERROR', log_file='/tmp/other.log')
        assert overridden['log_level'] == 'ERROR'
        assert overridden['log_file'] == '/tmp/other.log'

    def test_is_config_changed(self, config_file):
        manager = ConfigManager(str(config_file))
        assert manager.is_config_changed() is True

        manager.load_config()
        assert manager.is_config_changed() is False

        later = time.time() + 5
        os.utime(config_file, (later, later))
        assert manager.is_config_changed() is True

    def test_reload_keeps_old_config_on_error(self, config_file):
        """测试重新加载失败时保留原配置"""
        manager = ConfigManager(str(config_file))
        manager.load_config()

        config_file.write_text("service: {}\n", encoding='utf-8')

        with pytest.raises(ConfigError) as exc_info:
            manager.reload_config()

        assert exc_info.value.error_code == ErrorCode.CONFIG_RELOAD_ERROR
        assert manager.config['service']['service_name'] == 'web'

    def test_reload_valid_config(self, config_file):
        manager = ConfigManager(str(config_file))
        manager.load_config()

        config = yaml.safe_load(yaml.safe_dump(VALID_CONFIG))
        config['service']['check_interval'] = 30
        config_file.write_text(yaml.safe_dump(config), encoding='utf-8')

        new_config = manager.reload_config()

        assert new_config['service']['check_interval'] == 30
        assert manager.get_settings().check_interval == 30
