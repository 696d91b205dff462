"""HTTP告警器测试"""

import json

import pytest

from auto_healer.alerts.http_alerter import HTTPAlerter
from auto_healer.models.health_check import AlertEvent, AlertKind, AlertMessage
from auto_healer.utils.exceptions import NotificationConfigError, NotificationError


def _message(detail='服务 "web" 已通过 container 引擎重启'):
    event = AlertEvent(kind=AlertKind.RESTARTED, service_name='web', detail=detail,
                       metadata={'engine': 'container'})
    return AlertMessage(subject='[通知] web 服务已自动重启', body='正文',
                        recipient='ops@example.com', event=event)


class TestHTTPAlerterConfig:
    """HTTP告警器配置测试"""

    def test_valid_config(self):
        alerter = HTTPAlerter('hook', {'url': 'https://hooks.example.com/x', 'method': 'put'})

        assert alerter.method == 'PUT'
        assert alerter.alerter_type == 'http'

    @pytest.mark.parametrize('config', [
        {},
        {'url': 'hooks.example.com/x'},
        {'url': 'http://hooks.example.com/x', 'method': 'GET'},
        {'url': 'http://hooks.example.com/x', 'template': 123},
    ])
    def test_invalid_config(self, config):
        with pytest.raises(NotificationConfigError):
            HTTPAlerter('hook', config)


class TestHTTPAlerterSend:
    """针对本地 webhook 的发送测试"""

    @pytest.mark.asyncio
    async def test_default_payload(self, webhook_receiver):
        alerter = HTTPAlerter('hook', {'url': webhook_receiver.url})

        assert await alerter.send_alert(_message()) is True

        request = webhook_receiver.received[0]
        payload = json.loads(request['body'])
        assert request['method'] == 'POST'
        assert payload['kind'] == 'restarted'
        assert payload['service_name'] == 'web'
        assert payload['recipient'] == 'ops@example.com'
        assert payload['metadata'] == {'engine': 'container'}

    @pytest.mark.asyncio
    async def test_json_template_escapes_values(self, webhook_receiver):
        """测试JSON模板中的变量被正确转义"""
        alerter = HTTPAlerter('hook', {
            'url': webhook_receiver.url,
            'headers': {'X-Source': 'auto-healer'},
            'template': '{"text": "{{subject}}: {{detail}}", "kind": "{{kind}}"}'
        })

        await alerter.send_alert(_message())

        request = webhook_receiver.received[0]
        payload = json.loads(request['body'])
        assert payload['text'] == '[通知] web 服务已自动重启: 服务 "web" 已通过 container 引擎重启'
        assert payload['kind'] == 'restarted'
        assert request['headers']['X-Source'] == 'auto-healer'

    @pytest.mark.asyncio
    async def test_plain_text_template(self, webhook_receiver):
        alerter = HTTPAlerter('hook', {'url': webhook_receiver.url,
                                       'template': '{{service_name}} {{kind}}'})

        await alerter.send_alert(_message())

        assert webhook_receiver.received[0]['body'] == 'web restarted'

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, webhook_receiver):
        webhook_receiver.status = 503
        alerter = HTTPAlerter('hook', {'url': webhook_receiver.url})

        with pytest.raises(NotificationError, match="503"):
            await alerter.send_alert(_message())

    @pytest.mark.asyncio
    async def test_connection_error_raises(self):
        alerter = HTTPAlerter('hook', {'url': 'http://127.0.0.1:1/hook', 'timeout': 2})

        with pytest.raises(NotificationError):
            await alerter.send_alert(_message())

    def test_config_summary(self):
        summary = HTTPAlerter('hook', {'url': 'http://x.example.com/hook',
                                       'template': '{{subject}}'}).get_config_summary()

        assert summary['has_template'] is True
        assert summary['method'] == 'POST'
