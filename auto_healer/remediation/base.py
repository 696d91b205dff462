"""自愈器基类"""

import asyncio
import shutil
import time
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from ..models.health_check import RemediationEngine, RemediationOutcome
from ..utils.exceptions import RemediationError, ErrorCode
from ..utils.log_manager import get_logger


class BaseRemediator(ABC):
    """自愈器抽象基类

    子类实现 ``_execute``，通过 ``_run_command`` 调用外部工具。
    ``remediate`` 把所有错误转换为失败的 RemediationOutcome，不会向外抛出异常。
    """

    engine: RemediationEngine

    def __init__(self, service_name: str, config: Dict[str, Any]):
        """
        初始化自愈器

        Args:
            service_name: 服务名称
            config: 引擎配置参数，timeout 为整个自愈操作的超时时间
        """
        self.service_name = service_name
        self.config = config
        self.logger = get_logger(f'remediator.{self.engine.value}.{service_name}')

    @abstractmethod
    def validate_config(self) -> bool:
        """
        验证配置参数是否有效

        Returns:
            bool: 配置是否有效
        """
        pass

    @abstractmethod
    async def _execute(self, service_name: str, deadline: float) -> str:
        """
        执行自愈命令

        Args:
            service_name: 服务名称
            deadline: time.monotonic() 形式的截止时间

        Returns:
            str: 命令输出

        Raises:
            RemediationError: 工具缺失、命令失败或超时
        """
        pass

    def get_timeout(self) -> float:
        """
        获取自愈操作的超时时间

        Returns:
            float: 超时时间（秒）
        """
        return self.config.get('timeout', 30)

    async def remediate(self, service_name: Optional[str] = None) -> RemediationOutcome:
        """
        执行一次自愈操作

        Args:
            service_name: 服务名称，默认使用初始化时的名称

        Returns:
            RemediationOutcome: 自愈结果
        """
        target = service_name or self.service_name
        start_time = time.monotonic()
        deadline = start_time + self.get_timeout()

        self.logger.info(f"开始对服务 {target} 执行自愈操作 (引擎: {self.engine.value})")

        attempted = True
        try:
            output = await self._execute(target, deadline)
            succeeded = True
            message = output or '命令执行成功'
            self.logger.info(f"服务 {target} 自愈操作成功: {message}")
        except RemediationError as e:
            attempted = e.error_code != ErrorCode.REMEDIATION_TOOL_NOT_FOUND
            succeeded = False
            message = e.message
            if e.output:
                message = f"{message}: {e.output}"
            self.logger.error(f"服务 {target} 自愈操作失败: {message}")
        except Exception as e:
            succeeded = False
            message = f"自愈操作异常: {e}"
            self.logger.error(f"服务 {target} 自愈操作异常: {e}", exc_info=True)

        return RemediationOutcome(
            attempted=attempted,
            succeeded=succeeded,
            engine=self.engine,
            message=message,
            duration=time.monotonic() - start_time
        )

    async def _run_command(self, argv: List[str], deadline: float) -> str:
        """
        在截止时间内运行外部命令

        Args:
            argv: 命令及参数
            deadline: time.monotonic() 形式的截止时间

        Returns:
            str: 合并后的 stdout/stderr 输出

        Raises:
            RemediationError: 工具缺失、退出码非零或超时
        """
        command = ' '.join(argv)
        if shutil.which(argv[0]) is None:
            raise RemediationError(
                f"找不到自愈工具: {argv[0]}",
                ErrorCode.REMEDIATION_TOOL_NOT_FOUND,
                command=command
            )

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise RemediationError(
                f"自愈操作超时 ({self.get_timeout()}s)",
                ErrorCode.REMEDIATION_TIMEOUT,
                command=command
            )

        self.logger.debug(f"执行命令: {command}")
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT
        )

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=remaining)
        except asyncio.TimeoutError:
            await self._kill(process)
            raise RemediationError(
                f"自愈命令超时 ({self.get_timeout()}s): {command}",
                ErrorCode.REMEDIATION_TIMEOUT,
                command=command
            )
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        output = stdout.decode('utf-8', errors='replace').strip() if stdout else ''
        if process.returncode != 0:
            raise RemediationError(
                f"自愈命令退出码 {process.returncode}: {command}",
                ErrorCode.REMEDIATION_COMMAND_FAILED,
                command=command,
                output=output
            )

        return output

    async def _kill(self, process: asyncio.subprocess.Process):
        """终止超时或被取消的子进程"""
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
