"""数据模型测试"""

import pytest
from dataclasses import FrozenInstanceError
from datetime import datetime

from auto_healer.models.health_check import (
    AlertEvent, AlertKind, AlertMessage, HealthState, HealthTransition,
    ProbeResult, RemediationEngine, RemediationOutcome
)
from auto_healer.models.settings import HealerSettings
from auto_healer.utils.exceptions import ConfigError


class TestProbeResult:
    """探测结果测试"""

    def test_defaults(self):
        """测试默认值"""
        result = ProbeResult(success=True, latency=0.12, status_code=200)

        assert result.success is True
        assert result.error is None
        assert result.target_url == ''
        assert isinstance(result.timestamp, datetime)

    def test_immutable(self):
        """测试探测结果不可修改"""
        result = ProbeResult(success=False, latency=1.0, error="超时")

        with pytest.raises(FrozenInstanceError):
            result.success = True


class TestHealthState:
    """健康状态测试"""

    def test_default_state(self):
        state = HealthState()

        assert state.consecutive_failures == 0
        assert state.last_transition == HealthTransition.HEALTHY
        assert state.last_remediation_attempt is None

    def test_to_dict_and_from_dict(self):
        """测试字典转换"""
        attempt = datetime(2024, 5, 1, 12, 30, 0)
        state = HealthState(consecutive_failures=4,
                            last_transition=HealthTransition.CRITICAL,
                            last_remediation_attempt=attempt)

        data = state.to_dict()
        assert data == {
            'consecutive_failures': 4,
            'last_transition': 'critical',
            'last_remediation_attempt': '2024-05-01T12:30:00'
        }

        restored = HealthState.from_dict(data)
        assert restored == state

    def test_from_dict_clamps_negative_count(self):
        """测试负数计数被修正为0"""
        state = HealthState.from_dict({'consecutive_failures': -3})

        assert state.consecutive_failures == 0
        assert state.last_transition == HealthTransition.HEALTHY

    def test_from_dict_invalid_transition(self):
        with pytest.raises(ValueError):
            HealthState.from_dict({'last_transition': 'exploded'})


class TestEnums:
    """枚举测试"""

    def test_remediation_engine_values(self):
        assert RemediationEngine('container') == RemediationEngine.CONTAINER_RESTART
        assert RemediationEngine('orchestrator') == RemediationEngine.ORCHESTRATOR_ROLLOUT

    def test_alert_kind_values(self):
        assert {kind.value for kind in AlertKind} == {
            'threshold_breached', 'restarted', 'restart_failed', 'recovered'
        }


class TestAlertModels:
    """告警模型测试"""

    def test_alert_event(self):
        event = AlertEvent(kind=AlertKind.RESTARTED, service_name="web",
                           detail="已重启", metadata={'engine': 'container'})

        assert event.kind == AlertKind.RESTARTED
        assert event.metadata['engine'] == 'container'
        assert isinstance(event.timestamp, datetime)

    def test_alert_message(self):
        event = AlertEvent(kind=AlertKind.RECOVERED, service_name="web", detail="恢复")
        message = AlertMessage(subject="主题", body="正文", recipient=None, event=event)

        assert message.recipient is None
        assert message.event is event

    def test_remediation_outcome(self):
        outcome = RemediationOutcome(attempted=True, succeeded=False,
                                     engine=RemediationEngine.CONTAINER_RESTART,
                                     message="exit 1")

        assert outcome.duration == 0.0
        with pytest.raises(FrozenInstanceError):
            outcome.succeeded = True


class TestHealerSettings:
    """运行参数测试"""

    def _config(self, **service_overrides):
        service = {
            'service_name': 'web',
            'health_check_url': 'http://localhost:8080/health',
            'remediation_engine': 'docker',
        }
        service.update(service_overrides)
        return {
            'service': service,
            'remediation': {
                'container': {'mode': 'compose', 'compose_file': 'docker-compose.yml'},
                'orchestrator': {'deployment': 'web'}
            }
        }

    def test_defaults(self):
        """测试未配置项使用默认值"""
        settings = HealerSettings.from_config(self._config())

        assert settings.service_name == 'web'
        assert settings.remediation_engine == RemediationEngine.CONTAINER_RESTART
        assert settings.check_interval == 10
        assert settings.failure_threshold == 3
        assert settings.remediation_timeout == 30
        assert settings.cooldown_interval == 60
        assert settings.failure_backoff_interval == 60
        assert settings.probe_timeout == 5
        assert settings.method == 'GET'
        assert settings.expected_status == [200]
        assert settings.follow_redirects is True
        assert settings.remediation_options == {'mode': 'compose',
                                                'compose_file': 'docker-compose.yml'}

    def test_kubectl_alias_and_scalar_status(self):
        settings = HealerSettings.from_config(
            self._config(remediation_engine='kubectl', expected_status=204, method='head'))

        assert settings.remediation_engine == RemediationEngine.ORCHESTRATOR_ROLLOUT
        assert settings.expected_status == [204]
        assert settings.method == 'HEAD'
        assert settings.remediation_options == {'deployment': 'web'}

    def test_probe_and_remediation_config(self):
        settings = HealerSettings.from_config(
            self._config(probe_timeout=2, remediation_timeout=15, headers={'X-Token': 'abc'}))

        probe_config = settings.probe_config()
        assert probe_config['url'] == 'http://localhost:8080/health'
        assert probe_config['timeout'] == 2
        assert probe_config['headers'] == {'X-Token': 'abc'}

        remediation_config = settings.remediation_config()
        assert remediation_config['timeout'] == 15
        assert remediation_config['mode'] == 'compose'

    def test_missing_required_key(self):
        config = self._config()
        del config['service']['health_check_url']

        with pytest.raises(ConfigError):
            HealerSettings.from_config(config)
