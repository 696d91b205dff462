"""告警通知器

监督循环通过 ``notify`` 提交告警事件，事件进入有界队列后由后台任务投递，
投递慢或失败都不会阻塞监督循环。
"""

import asyncio
from typing import Optional, Dict, Any

from .manager import AlertManager
from ..models.health_check import AlertEvent, AlertKind
from ..utils.log_manager import get_logger


class Notifier:
    """基于有界队列和后台投递任务的告警通知器"""

    def __init__(self, alert_manager: AlertManager, queue_size: int = 100):
        """
        初始化通知器

        Args:
            alert_manager: 告警管理器
            queue_size: 队列容量，队列满时丢弃新事件
        """
        self.alert_manager = alert_manager
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.logger = get_logger('notifier')
        self._worker: Optional[asyncio.Task] = None

        self.sent_count = 0
        self.failed_count = 0
        self.dropped_count = 0

    def notify(self, event: AlertEvent) -> None:
        """
        提交告警事件，立即返回

        Args:
            event: 告警事件
        """
        level = 'warning' if event.kind in (AlertKind.THRESHOLD_BREACHED,
                                            AlertKind.RESTART_FAILED) else 'info'
        getattr(self.logger, level)(
            f"[ALERT] {event.service_name} {event.kind.value}: {event.detail}")

        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped_count += 1
            self.logger.error(f"告警队列已满，丢弃告警: {event.kind.value} ({event.service_name})")

    async def start(self):
        """启动后台投递任务"""
        if self._worker is not None and not self._worker.done():
            self.logger.warning("通知器已经在运行")
            return

        self._worker = asyncio.create_task(self._deliver_loop())
        self.logger.info("告警通知器已启动")

    async def stop(self, drain_timeout: float = 10):
        """
        停止后台投递任务，先在超时时间内尽量投递队列中剩余的告警

        Args:
            drain_timeout: 等待队列清空的时间（秒）
        """
        if self._worker is None:
            return

        if not self._worker.done():
            try:
                await asyncio.wait_for(self.queue.join(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                self.logger.warning(f"告警队列未在 {drain_timeout} 秒内清空，剩余 {self.queue.qsize()} 条被丢弃")

            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass

        self._worker = None
        self.logger.info("告警通知器已停止")

    async def flush(self):
        """等待队列中所有告警投递完成"""
        await self.queue.join()

    async def _deliver_loop(self):
        """后台投递循环"""
        while True:
            event = await self.queue.get()
            try:
                results = await self.alert_manager.send_alert(event)
                if results and not all(results.values()):
                    self.failed_count += 1
                else:
                    self.sent_count += 1
            except Exception as e:
                self.failed_count += 1
                self.logger.error(f"投递告警时发生异常: {e}", exc_info=True)
            finally:
                self.queue.task_done()

    def get_stats(self) -> Dict[str, Any]:
        """
        获取通知器统计信息

        Returns:
            Dict[str, Any]: 统计信息
        """
        return {
            'running': self._worker is not None and not self._worker.done(),
            'queued': self.queue.qsize(),
            'sent': self.sent_count,
            'failed': self.failed_count,
            'dropped': self.dropped_count,
            'alerter_names': self.alert_manager.get_alerter_names()
        }
