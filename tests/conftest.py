"""测试公用的本地HTTP服务"""

import asyncio
import sys
from typing import Any, Dict, List

import pytest
import pytest_asyncio
import yaml
from aiohttp import web

from auto_healer.utils.log_manager import log_manager


class HealthEndpoint:
    """本地健康端点，按顺序返回 statuses 中的状态码，之后重复最后一个"""

    def __init__(self):
        self.statuses: List[int] = [200]
        self.delay = 0.0
        self.requests: List[str] = []
        self.runner = None
        self.port = None

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    @property
    def url(self) -> str:
        return f"{self.base_url}/health"

    async def _health(self, request: web.Request) -> web.Response:
        self.requests.append(request.method)
        status = self.statuses[min(len(self.requests), len(self.statuses)) - 1]
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.Response(status=status, text='ok' if status < 400 else 'error')

    async def _moved(self, request: web.Request) -> web.Response:
        raise web.HTTPFound('/health')

    async def start(self):
        app = web.Application()
        app.router.add_route('*', '/health', self._health)
        app.router.add_get('/moved', self._moved)
        self.runner = web.AppRunner(app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, '127.0.0.1', 0)
        await site.start()
        self.port = self.runner.addresses[0][1]

    async def stop(self):
        await self.runner.cleanup()


class WebhookReceiver:
    """本地 webhook 接收端，记录收到的请求"""

    def __init__(self):
        self.status = 200
        self.received: List[Dict[str, Any]] = []
        self.runner = None
        self.port = None

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}/hook"

    async def _hook(self, request: web.Request) -> web.Response:
        body = await request.text()
        self.received.append({
            'method': request.method,
            'headers': dict(request.headers),
            'body': body
        })
        return web.Response(status=self.status, text='received')

    async def start(self):
        app = web.Application()
        app.router.add_route('*', '/hook', self._hook)
        self.runner = web.AppRunner(app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, '127.0.0.1', 0)
        await site.start()
        self.port = self.runner.addresses[0][1]

    async def stop(self):
        await self.runner.cleanup()


@pytest_asyncio.fixture
async def health_endpoint():
    endpoint = HealthEndpoint()
    await endpoint.start()
    yield endpoint
    await endpoint.stop()


@pytest_asyncio.fixture
async def webhook_receiver():
    receiver = WebhookReceiver()
    await receiver.start()
    yield receiver
    await receiver.stop()


def build_healer_config(tmp_path, health_url: str, alerts: List[Dict[str, Any]] = None,
                        **service_overrides) -> Dict[str, Any]:
    """生成指向本地服务的完整配置，自愈命令为打印文本的 Python 子进程"""
    service = {
        'service_name': 'web',
        'health_check_url': health_url,
        'remediation_engine': 'container',
        'check_interval': 0.05,
        'failure_threshold': 3,
        'probe_timeout': 2,
        'alert_recipient': 'ops@example.com'
    }
    service.update(service_overrides)
    return {
        'global': {
            'log_level': 'DEBUG',
            'log_file': str(tmp_path / 'logs' / 'healer.log'),
            'state_file': str(tmp_path / 'data' / 'state.json')
        },
        'service': service,
        'remediation': {
            'container': {
                'mode': 'compose',
                'compose_command': [sys.executable, '-c', "print('restarted')"]
            }
        },
        'notifications': {'queue_size': 10},
        'alerts': alerts if alerts is not None else []
    }


def write_config(path, config: Dict[str, Any]) -> str:
    path.write_text(yaml.safe_dump(config, allow_unicode=True), encoding='utf-8')
    return str(path)


@pytest.fixture
def reset_logging():
    """恢复全局日志配置，避免应用测试把文件处理器留给后续测试"""
    yield log_manager
    log_manager.cleanup()
    log_manager.configure({'log_level': 'INFO', 'enable_file': False, 'enable_console': True})
