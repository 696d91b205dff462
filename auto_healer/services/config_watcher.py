"""配置文件监控器"""

import asyncio
import os
from typing import Callable, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .config_manager import ConfigManager
from ..utils.exceptions import ConfigError
from ..utils.log_manager import get_logger


class ConfigFileHandler(FileSystemEventHandler):
    """配置文件变更事件处理器，在 watchdog 线程中运行"""

    def __init__(self, config_path: str, callback: Callable[[], None]):
        """
        初始化事件处理器

        Args:
            config_path: 配置文件绝对路径
            callback: 配置变更回调函数
        """
        self.config_path = config_path
        self.callback = callback
        self.logger = get_logger('config_watcher')

    def _matches(self, event) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, 'dest_path', None)]
        return any(p and os.path.abspath(p) == self.config_path for p in paths)

    def on_modified(self, event):
        if self._matches(event):
            self.logger.debug(f"检测到配置文件变更: {self.config_path}")
            self.callback()

    # 编辑器保存时常以新建或重命名的方式替换文件
    on_created = on_modified
    on_moved = on_modified


class ConfigWatcher:
    """配置文件监控器，支持热更新

    watchdog 在独立线程中回调，这里通过 ``loop.call_soon_threadsafe``
    把重新加载切换回事件循环，保证配置变更回调与监督循环在同一线程执行。
    """

    def __init__(self, config_manager: ConfigManager,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        初始化配置监控器

        Args:
            config_manager: 配置管理器实例
            loop: 执行回调的事件循环，默认在 start_watching 时取当前运行的循环
        """
        self.config_manager = config_manager
        self.loop = loop
        self.observer: Optional[Observer] = None
        self.logger = get_logger('config_watcher')
        self.change_callbacks: List[Callable] = []
        self._running = False

    def add_change_callback(self, callback: Callable):
        """
        添加配置变更回调函数

        Args:
            callback: 回调函数 callback(old_config, new_config)
        """
        self.change_callbacks.append(callback)

    def remove_change_callback(self, callback: Callable):
        if callback in self.change_callbacks:
            self.change_callbacks.remove(callback)

    def _schedule_reload(self):
        """从 watchdog 线程调度一次重新加载"""
        if self.loop is None or self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.check_for_changes)

    def check_for_changes(self) -> bool:
        """
        文件修改时间变化时重新加载配置

        Returns:
            bool: 是否成功加载了新配置
        """
        if not self.config_manager.is_config_changed():
            return False
        return self._on_config_changed()

    def _on_config_changed(self) -> bool:
        """处理配置文件变更，无效的新配置只记录日志"""
        old_config = self.config_manager.config.copy()
        try:
            new_config = self.config_manager.reload_config()
        except ConfigError as e:
            self.logger.error(f"{e.message}")
            return False

        self.logger.info("配置文件已重新加载")

        for callback in self.change_callbacks:
            try:
                callback(old_config, new_config)
            except Exception as e:
                self.logger.error(f"配置变更回调执行失败: {e}", exc_info=True)
        return True

    def start_watching(self):
        """开始监控配置文件"""
        if self._running:
            self.logger.warning("配置监控器已经在运行")
            return

        if self.loop is None:
            self.loop = asyncio.get_running_loop()

        config_path = os.path.abspath(self.config_manager.config_path)
        config_dir = os.path.dirname(config_path)

        try:
            self.observer = Observer()
            self.observer.schedule(ConfigFileHandler(config_path, self._schedule_reload),
                                   config_dir, recursive=False)
            self.observer.start()
        except OSError as e:
            self.observer = None
            self.logger.error(f"启动配置监控失败: {e}")
            raise ConfigError(f"启动配置监控失败: {e}", config_path=config_path, cause=e)

        self._running = True
        self.logger.info(f"开始监控配置文件: {self.config_manager.config_path}")

    def stop_watching(self):
        """停止监控配置文件"""
        if not self._running:
            return

        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None

        self._running = False
        self.logger.info("配置文件监控已停止")

    def is_running(self) -> bool:
        return self._running
