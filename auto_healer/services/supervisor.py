"""监督循环模块

按固定间隔探测服务健康状态，连续失败达到阈值时触发自愈操作，
并在状态转换时发送告警。HealthState 只在本模块的控制循环中修改。
"""

import asyncio
import time
from enum import Enum
from typing import Callable, Dict, Any, Optional

from .failure_counter import FailureCounter
from ..alerts.notifier import Notifier
from ..checkers.base import BaseHealthChecker
from ..models.health_check import (
    AlertEvent, AlertKind, HealthState, ProbeResult, RemediationOutcome
)
from ..models.settings import HealerSettings
from ..remediation.base import BaseRemediator
from ..utils.exceptions import SupervisorError
from ..utils.log_manager import get_logger


class SupervisorPhase(Enum):
    """监督循环阶段"""
    PROBING = "probing"
    REMEDIATING = "remediating"
    COOLDOWN = "cooldown"


class Supervisor:
    """监督循环

    - 每一轮先收集已完成的自愈结果，再执行一次探测并处理结果
    - 自愈操作在后台任务中执行，结果只由控制循环记录
    - 自愈结果返回前观察到成功探测时，该结果视为过期，不再发送重启告警
    - 两次自愈之间至少间隔 cooldown_interval 秒
    - 自愈失败后进入 COOLDOWN 阶段，改用 failure_backoff_interval 作为探测间隔
    """

    def __init__(self, settings: HealerSettings, probe: BaseHealthChecker,
                 remediator: BaseRemediator, notifier: Notifier,
                 failure_counter: Optional[FailureCounter] = None,
                 clock: Callable[[], float] = time.monotonic):
        """初始化监督循环

        Args:
            settings: 运行参数
            probe: 健康探测器
            remediator: 自愈器
            notifier: 告警通知器
            failure_counter: 失败计数器，默认按阈值新建
            clock: 单调时钟，用于冷却期计算
        """
        self.settings = settings
        self.service_name = settings.service_name
        self.probe = probe
        self.remediator = remediator
        self.notifier = notifier
        self.failure_counter = failure_counter or FailureCounter(settings.failure_threshold)
        self.logger = get_logger(f'supervisor.{settings.service_name}')

        self.check_interval = settings.check_interval
        self.cooldown_interval = settings.cooldown_interval
        self.failure_backoff_interval = settings.failure_backoff_interval

        self.phase = SupervisorPhase.PROBING
        self._clock = clock
        self._last_remediation_at: Optional[float] = None
        self._remediation_task: Optional[asyncio.Task] = None
        self._recovered_during_remediation = False
        self._running = False

        self.remediation_count = 0
        self.alert_counts: Dict[AlertKind, int] = {kind: 0 for kind in AlertKind}
        self.last_outcome: Optional[RemediationOutcome] = None

    @property
    def state(self) -> HealthState:
        """当前健康状态的副本"""
        return self.failure_counter.snapshot()

    @property
    def remediation_in_flight(self) -> bool:
        return self._remediation_task is not None

    def current_interval(self) -> float:
        """当前阶段的探测间隔"""
        if self.phase == SupervisorPhase.COOLDOWN:
            return self.failure_backoff_interval
        return self.check_interval

    async def run(self, shutdown_event: asyncio.Event):
        """运行监督循环直到 shutdown_event 被设置

        Args:
            shutdown_event: 关闭信号

        Raises:
            SupervisorError: 循环已在运行
        """
        if self._running:
            raise SupervisorError(f"服务 {self.service_name} 的监督循环已在运行")
        self._running = True

        self.logger.info(
            f"开始监控服务 {self.service_name}: {self.settings.health_check_url} "
            f"(间隔 {self.check_interval}s, 阈值 {self.failure_counter.threshold}, "
            f"引擎 {self.remediator.engine.value})"
        )

        try:
            while not shutdown_event.is_set():
                try:
                    await self.run_once()
                except Exception as e:
                    self.logger.error(f"监督循环本轮执行异常: {e}", exc_info=True)

                await self._wait_next_tick(shutdown_event)
        finally:
            await self._finish_remediation()
            self._running = False
            self.logger.info(f"服务 {self.service_name} 的监督循环已停止")

    async def run_once(self) -> ProbeResult:
        """执行一轮：收集自愈结果、探测、处理探测结果

        Returns:
            ProbeResult: 本轮的探测结果
        """
        self._collect_remediation_outcome()
        result = await self.probe.check_health()
        self.handle_probe_result(result)
        return result

    def handle_probe_result(self, result: ProbeResult):
        """处理一次探测结果，这是唯一修改 HealthState 的入口

        Args:
            result: 探测结果
        """
        if result.success:
            self.logger.debug(
                f"probe ok: 服务 {self.service_name} HTTP {result.status_code}, "
                f"响应时间: {result.latency:.3f}s"
            )
            previous = self.failure_counter.consecutive_failures
            kind = self.failure_counter.record_success(result)

            if self._remediation_task is not None:
                self._recovered_during_remediation = True

            if kind is AlertKind.RECOVERED:
                self.logger.info(
                    f"服务 {self.service_name} 已恢复正常 (此前连续失败 {previous} 次)")
                self._emit(
                    AlertKind.RECOVERED,
                    f"服务 {self.service_name} 在连续 {previous} 次健康检查失败后恢复正常",
                    previous_failures=previous
                )

            if self._remediation_task is None:
                self.phase = SupervisorPhase.PROBING
            return

        kind = self.failure_counter.record_failure(result)
        count = self.failure_counter.consecutive_failures
        self.logger.warning(
            f"服务 {self.service_name} 健康检查失败 "
            f"(HTTP状态: {result.status_code if result.status_code is not None else '无'}, "
            f"错误: {result.error}). 连续失败次数: {count}"
        )

        if kind is AlertKind.THRESHOLD_BREACHED:
            self.logger.critical(
                f"服务 {self.service_name} 连续失败次数达到阈值 {self.failure_counter.threshold}")
            self._emit(
                AlertKind.THRESHOLD_BREACHED,
                f"服务 {self.service_name} 连续 {count} 次健康检查失败，准备自动重启。"
                f"最近一次错误: {result.error}",
                consecutive_failures=count,
                status_code=result.status_code
            )

        if self.failure_counter.is_critical:
            self._maybe_remediate()

    def _maybe_remediate(self) -> bool:
        """在冷却期允许时启动自愈操作

        Returns:
            bool: 是否启动了自愈操作
        """
        if self._remediation_task is not None:
            self.logger.debug(f"服务 {self.service_name} 的自愈操作仍在进行，跳过本次触发")
            return False

        now = self._clock()
        if self._last_remediation_at is not None:
            elapsed = now - self._last_remediation_at
            if elapsed < self.cooldown_interval:
                self.logger.info(
                    f"距上次自愈仅 {elapsed:.0f}s，冷却期 {self.cooldown_interval}s 内跳过自愈 "
                    f"(服务: {self.service_name})"
                )
                return False

        self._start_remediation(now)
        return True

    def _start_remediation(self, now: float):
        self._last_remediation_at = now
        self.remediation_count += 1
        self._recovered_during_remediation = False
        self.failure_counter.record_remediation_attempt()
        self.phase = SupervisorPhase.REMEDIATING

        snapshot = self.failure_counter.snapshot()
        self.logger.warning(
            f"对服务 {self.service_name} 执行第 {self.remediation_count} 次自愈操作 "
            f"(引擎: {self.remediator.engine.value}, 连续失败 {snapshot.consecutive_failures} 次)"
        )
        self._remediation_task = asyncio.create_task(self._run_remediation(snapshot))

    async def _run_remediation(self, state: HealthState) -> RemediationOutcome:
        """后台执行自愈操作，只读取状态副本"""
        try:
            return await self.remediator.remediate(self.service_name)
        except Exception as e:
            self.logger.error(f"自愈器执行异常: {e}", exc_info=True)
            return RemediationOutcome(
                attempted=True,
                succeeded=False,
                engine=self.remediator.engine,
                message=f"自愈操作异常: {e} (触发时连续失败 {state.consecutive_failures} 次)"
            )

    def _collect_remediation_outcome(self) -> Optional[RemediationOutcome]:
        """如果后台自愈已完成，记录其结果

        Returns:
            已记录的自愈结果，没有完成的自愈时返回None
        """
        task = self._remediation_task
        if task is None or not task.done():
            return None

        self._remediation_task = None
        if task.cancelled():
            outcome = RemediationOutcome(
                attempted=True,
                succeeded=False,
                engine=self.remediator.engine,
                message="自愈操作被取消"
            )
        else:
            outcome = task.result()

        self._apply_remediation_outcome(outcome)
        return outcome

    def _apply_remediation_outcome(self, outcome: RemediationOutcome):
        self.last_outcome = outcome

        if self._recovered_during_remediation:
            self._recovered_during_remediation = False
            self.phase = SupervisorPhase.PROBING
            self.logger.info(
                f"服务 {self.service_name} 在自愈结果返回前已恢复，忽略过期的自愈结果 "
                f"(成功: {outcome.succeeded}): {outcome.message}"
            )
            return

        if outcome.succeeded:
            self.failure_counter.reset_after_remediation()
            self.phase = SupervisorPhase.PROBING
            self.logger.info(
                f"服务 {self.service_name} 重启成功，失败计数已清零 "
                f"(耗时 {outcome.duration:.1f}s)"
            )
            self._emit(
                AlertKind.RESTARTED,
                f"服务 {self.service_name} 已通过 {outcome.engine.value} 引擎重启: {outcome.message}",
                engine=outcome.engine.value
            )
        else:
            self.phase = SupervisorPhase.COOLDOWN
            self.logger.error(
                f"服务 {self.service_name} 重启失败，{self.failure_backoff_interval}s 后继续检查: "
                f"{outcome.message}"
            )
            self._emit(
                AlertKind.RESTART_FAILED,
                f"服务 {self.service_name} 自动重启失败: {outcome.message}",
                engine=outcome.engine.value,
                attempted=outcome.attempted
            )

    async def wait_for_remediation(self) -> Optional[RemediationOutcome]:
        """等待进行中的自愈操作完成并记录结果

        Returns:
            记录的自愈结果，没有进行中的自愈时返回None
        """
        if self._remediation_task is None:
            return None
        await asyncio.wait({self._remediation_task})
        return self._collect_remediation_outcome()

    async def _finish_remediation(self):
        """关闭时等待进行中的自愈操作结束，避免留下执行一半的操作"""
        if self._remediation_task is None:
            return
        self.logger.info(f"等待服务 {self.service_name} 进行中的自愈操作完成")
        await self.wait_for_remediation()

    async def _wait_next_tick(self, shutdown_event: asyncio.Event):
        """等待下一轮探测，收到关闭信号时立即返回，自愈完成时及时记录结果"""
        loop = asyncio.get_running_loop()
        started = loop.time()
        stopper = asyncio.ensure_future(shutdown_event.wait())

        try:
            while not shutdown_event.is_set():
                remaining = started + self.current_interval() - loop.time()
                if remaining <= 0:
                    break

                waiters = {stopper}
                if self._remediation_task is not None:
                    waiters.add(self._remediation_task)

                await asyncio.wait(waiters, timeout=remaining,
                                   return_when=asyncio.FIRST_COMPLETED)
                self._collect_remediation_outcome()
        finally:
            stopper.cancel()

    def _emit(self, kind: AlertKind, detail: str, **metadata):
        self.alert_counts[kind] += 1
        self.notifier.notify(AlertEvent(
            kind=kind,
            service_name=self.service_name,
            detail=detail,
            metadata=metadata
        ))

    def update_intervals(self, check_interval: Optional[float] = None,
                         cooldown_interval: Optional[float] = None,
                         failure_backoff_interval: Optional[float] = None):
        """更新探测间隔和冷却时间（配置热更新）"""
        if check_interval is not None and check_interval != self.check_interval:
            self.logger.info(f"更新探测间隔: {self.check_interval}s -> {check_interval}s")
            self.check_interval = check_interval
        if cooldown_interval is not None and cooldown_interval != self.cooldown_interval:
            self.logger.info(f"更新自愈冷却时间: {self.cooldown_interval}s -> {cooldown_interval}s")
            self.cooldown_interval = cooldown_interval
        if (failure_backoff_interval is not None
                and failure_backoff_interval != self.failure_backoff_interval):
            self.logger.info(
                f"更新失败退避间隔: {self.failure_backoff_interval}s -> {failure_backoff_interval}s")
            self.failure_backoff_interval = failure_backoff_interval

    def get_status(self) -> Dict[str, Any]:
        """获取监督循环状态

        Returns:
            状态信息字典
        """
        status = {
            'service_name': self.service_name,
            'phase': self.phase.value,
            'current_interval': self.current_interval(),
            'remediation_in_flight': self.remediation_in_flight,
            'remediation_count': self.remediation_count,
            'alert_counts': {kind.value: count for kind, count in self.alert_counts.items()},
            'counter': self.failure_counter.get_stats()
        }
        if self.last_outcome:
            status['last_outcome'] = {
                'succeeded': self.last_outcome.succeeded,
                'engine': self.last_outcome.engine.value,
                'message': self.last_outcome.message,
                'timestamp': self.last_outcome.timestamp.isoformat()
            }
        return status
