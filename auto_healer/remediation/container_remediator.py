"""容器引擎自愈器（docker / docker-compose 重启）"""

import shlex
from typing import Dict, Any, List

from .base import BaseRemediator
from .factory import register_remediator
from ..models.health_check import RemediationEngine
from ..utils.exceptions import RemediationError, ErrorCode


@register_remediator(RemediationEngine.CONTAINER_RESTART)
class ContainerRemediator(BaseRemediator):
    """通过容器引擎重启服务

    支持两种模式：
    - compose: ``docker-compose [-f 文件] restart <服务>``
    - container: ``docker ps -q --filter name=<名称>`` 后 ``docker restart <ID...>``
    """

    engine = RemediationEngine.CONTAINER_RESTART

    def __init__(self, service_name: str, config: Dict[str, Any]):
        super().__init__(service_name, config)
        self.mode = config.get('mode', 'compose')
        self.container_binary = config.get('container_binary', 'docker')
        self.compose_command = self._split_command(config.get('compose_command', 'docker-compose'))
        self.compose_file = config.get('compose_file')
        self.target_name = config.get('target_name')

    @staticmethod
    def _split_command(command: Any) -> List[str]:
        if isinstance(command, list):
            return [str(part) for part in command]
        return shlex.split(str(command))

    def validate_config(self) -> bool:
        if self.mode not in ('compose', 'container'):
            self.logger.error(f"容器自愈器模式无效: {self.mode}")
            return False
        if self.mode == 'compose' and not self.compose_command:
            self.logger.error("容器自愈器缺少 compose_command 配置")
            return False
        if self.mode == 'container' and not self.container_binary:
            self.logger.error("容器自愈器缺少 container_binary 配置")
            return False
        timeout = self.get_timeout()
        return isinstance(timeout, (int, float)) and timeout > 0

    async def _execute(self, service_name: str, deadline: float) -> str:
        target = self.target_name or service_name

        if self.mode == 'compose':
            argv = list(self.compose_command)
            if self.compose_file:
                argv += ['-f', self.compose_file]
            argv += ['restart', target]
            return await self._run_command(argv, deadline)

        listing = await self._run_command(
            [self.container_binary, 'ps', '-q', '--filter', f'name={target}'],
            deadline
        )
        container_ids = listing.split()
        if not container_ids:
            raise RemediationError(
                f"没有找到名称匹配 '{target}' 的运行中容器",
                ErrorCode.REMEDIATION_TARGET_NOT_FOUND
            )

        self.logger.info(f"重启容器: {', '.join(container_ids)}")
        return await self._run_command(
            [self.container_binary, 'restart', *container_ids],
            deadline
        )
