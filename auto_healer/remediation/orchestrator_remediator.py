"""编排器自愈器（kubectl rollout restart）"""

import math
import time
from typing import Dict, Any, List

from .base import BaseRemediator
from .factory import register_remediator
from ..models.health_check import RemediationEngine


@register_remediator(RemediationEngine.ORCHESTRATOR_ROLLOUT)
class OrchestratorRemediator(BaseRemediator):
    """通过 ``kubectl rollout restart deployment/<名称>`` 触发滚动重启"""

    engine = RemediationEngine.ORCHESTRATOR_ROLLOUT

    def __init__(self, service_name: str, config: Dict[str, Any]):
        super().__init__(service_name, config)
        self.kubectl_binary = config.get('kubectl_binary', 'kubectl')
        self.deployment = config.get('deployment')
        self.namespace = config.get('namespace')
        self.context = config.get('context')
        self.kubeconfig = config.get('kubeconfig')
        self.wait_for_rollout = config.get('wait_for_rollout', False)

    def validate_config(self) -> bool:
        if not self.kubectl_binary:
            self.logger.error("编排器自愈器缺少 kubectl_binary 配置")
            return False
        timeout = self.get_timeout()
        return isinstance(timeout, (int, float)) and timeout > 0

    def _global_args(self) -> List[str]:
        args = []
        if self.kubeconfig:
            args += ['--kubeconfig', self.kubeconfig]
        if self.context:
            args += ['--context', self.context]
        if self.namespace:
            args += ['--namespace', self.namespace]
        return args

    async def _execute(self, service_name: str, deadline: float) -> str:
        resource = f"deployment/{self.deployment or service_name}"
        base = [self.kubectl_binary, *self._global_args(), 'rollout']

        output = await self._run_command([*base, 'restart', resource], deadline)

        if self.wait_for_rollout:
            remaining = max(1, math.floor(deadline - time.monotonic()))
            status = await self._run_command(
                [*base, 'status', resource, f'--timeout={remaining}s'],
                deadline
            )
            output = f"{output}\n{status}".strip()

        return output
