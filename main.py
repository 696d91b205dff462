#!/usr/bin/env python3
"""
服务自愈监控主应用程序入口

集成健康探测、失败计数、自动重启和告警通知，
实现应用程序启动、配置热更新和优雅关闭。
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Dict, Any, List

from auto_healer.alerts.manager import AlertManager
from auto_healer.alerts.notifier import Notifier
from auto_healer.checkers.http_probe import HttpHealthProbe
from auto_healer.models.health_check import AlertEvent, AlertKind
from auto_healer.models.settings import HealerSettings
from auto_healer.remediation import BaseRemediator, remediator_factory
from auto_healer.services.config_manager import ConfigManager
from auto_healer.services.config_watcher import ConfigWatcher
from auto_healer.services.failure_counter import FailureCounter
from auto_healer.services.supervisor import Supervisor
from auto_healer.utils.exceptions import AutoHealerError, ConfigError
from auto_healer.utils.log_manager import log_manager, get_logger

# 版本信息
__version__ = "1.0.0"

# 修改后需要重启才能生效的配置项
RESTART_REQUIRED_FIELDS = ('service_name', 'health_check_url', 'remediation_engine',
                           'failure_threshold')


class AutoHealerApp:
    """服务自愈监控主应用程序类"""

    def __init__(self, config_path: str, log_level: Optional[str] = None,
                 log_file: Optional[str] = None):
        """初始化应用程序

        Args:
            config_path: 配置文件路径
            log_level: 命令行指定的日志级别，覆盖配置文件
            log_file: 命令行指定的日志文件，覆盖配置文件
        """
        self.config_path = config_path
        self.log_level = log_level
        self.log_file = log_file
        self.logger: Optional[logging.Logger] = None
        self.is_running = False
        self.shutdown_event = asyncio.Event()

        # 核心组件
        self.config_manager: Optional[ConfigManager] = None
        self.config_watcher: Optional[ConfigWatcher] = None
        self.settings: Optional[HealerSettings] = None
        self.probe: Optional[HttpHealthProbe] = None
        self.remediator: Optional[BaseRemediator] = None
        self.alert_manager: Optional[AlertManager] = None
        self.notifier: Optional[Notifier] = None
        self.failure_counter: Optional[FailureCounter] = None
        self.supervisor: Optional[Supervisor] = None

    async def initialize(self):
        """初始化应用程序组件

        Raises:
            ConfigError: 配置无效
        """
        self.config_manager = ConfigManager(self.config_path)
        config = self.config_manager.load_config()

        self._configure_logging()
        self.logger = get_logger('main')
        self.logger.info("开始初始化服务自愈监控")

        self.settings = self.config_manager.get_settings()

        self.probe = HttpHealthProbe(self.settings.service_name, self.settings.probe_config())
        if not self.probe.validate_config():
            raise ConfigError(f"健康探测配置无效: {self.settings.health_check_url}")

        self.remediator = remediator_factory.create_remediator(
            self.settings.remediation_engine,
            self.settings.service_name,
            self.settings.remediation_config()
        )

        notifications = self.config_manager.get_notifications_config()
        self.alert_manager = AlertManager(
            self.config_manager.get_alerts_config(),
            default_recipient=self.settings.alert_recipient,
            subject_template=notifications.get('subject_template'),
            body_template=notifications.get('body_template')
        )
        self.notifier = Notifier(self.alert_manager, queue_size=notifications.get('queue_size', 100))

        state_file = (config.get('global') or {}).get('state_file')
        self.failure_counter = FailureCounter(self.settings.failure_threshold,
                                              persistence_file=state_file)

        self.supervisor = Supervisor(
            self.settings,
            self.probe,
            self.remediator,
            self.notifier,
            failure_counter=self.failure_counter
        )

        self.config_watcher = ConfigWatcher(self.config_manager)
        self.config_watcher.add_change_callback(self._on_config_changed_callback)

        self.logger.info(
            f"应用程序组件初始化完成: 服务 {self.settings.service_name}, "
            f"自愈引擎 {self.settings.remediation_engine.value}, "
            f"{self.alert_manager.get_alerter_count()} 个告警器"
        )

    def _configure_logging(self):
        """配置日志系统，命令行参数优先"""
        log_config = self.config_manager.get_logging_config(self.log_level, self.log_file)
        log_config['enable_console'] = True
        log_manager.configure(log_config)

    def _on_config_changed_callback(self, old_config: Dict[str, Any],
                                    new_config: Dict[str, Any]):
        """配置文件变更回调，只更新可热加载的部分"""
        self.logger.info("检测到配置文件变更，应用新配置")

        self._configure_logging()
        new_settings = HealerSettings.from_config(new_config)

        for field_name in RESTART_REQUIRED_FIELDS:
            if getattr(new_settings, field_name) != getattr(self.settings, field_name):
                self.logger.warning(f"配置项 {field_name} 的修改需要重启后生效")

        self.supervisor.update_intervals(
            check_interval=new_settings.check_interval,
            cooldown_interval=new_settings.cooldown_interval,
            failure_backoff_interval=new_settings.failure_backoff_interval
        )

        notifications = new_config.get('notifications') or {}
        self.alert_manager.default_recipient = new_settings.alert_recipient
        self.alert_manager.subject_template = (notifications.get('subject_template')
                                               or self.alert_manager.subject_template)
        self.alert_manager.body_template = (notifications.get('body_template')
                                            or self.alert_manager.body_template)
        self.alert_manager.reload_alerters(new_config.get('alerts') or [])

        self.logger.info("配置重新加载完成")

    async def start(self):
        """启动应用程序，运行监督循环直到收到关闭信号"""
        if self.is_running:
            self.logger.warning("应用程序已经在运行")
            return

        self.is_running = True
        self.logger.info("启动服务自愈监控")

        try:
            await self.notifier.start()

            try:
                self.config_watcher.start_watching()
            except ConfigError as e:
                self.logger.warning(f"配置热更新不可用: {e.message}")

            await self.supervisor.run(self.shutdown_event)
        finally:
            await self.stop()

    async def stop(self):
        """停止应用程序"""
        if not self.is_running:
            return

        self.logger.info("正在停止服务自愈监控...")
        self.is_running = False
        self.shutdown_event.set()

        if self.config_watcher:
            self.config_watcher.stop_watching()

        if self.notifier:
            await self.notifier.stop()

        self.logger.info("服务自愈监控已停止")

    def shutdown(self):
        """触发应用程序关闭"""
        if self.logger:
            self.logger.info("收到关闭信号")
        self.shutdown_event.set()

    def get_status(self) -> Dict[str, Any]:
        """获取应用程序状态

        Returns:
            应用程序状态信息
        """
        status = {
            'is_running': self.is_running,
            'config_path': self.config_path,
            'version': __version__
        }

        if self.supervisor:
            status['supervisor'] = self.supervisor.get_status()

        if self.notifier:
            status['notifier'] = self.notifier.get_stats()

        if self.config_watcher:
            status['config_watching'] = self.config_watcher.is_running()

        return status


# 全局应用程序实例
app: Optional[AutoHealerApp] = None


def signal_handler(signum, frame=None):
    """信号处理器"""
    signal_name = signal.Signals(signum).name
    print(f"\n收到信号 {signal_name} ({signum})")

    if app:
        app.shutdown()
    else:
        print("应用程序未初始化，直接退出")
        sys.exit(0)


def install_signal_handlers(loop: asyncio.AbstractEventLoop):
    """注册 SIGINT/SIGTERM 处理器"""
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, signal_handler, signum)
        except NotImplementedError:
            # Windows 事件循环不支持 add_signal_handler
            signal.signal(signum, signal_handler)


def create_argument_parser() -> argparse.ArgumentParser:
    """创建命令行参数解析器"""
    parser = argparse.ArgumentParser(
        prog='auto-healer',
        description='服务自愈监控 - 定期探测服务健康端点，连续失败时自动重启并发送告警通知',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例用法:
  %(prog)s config.yaml                    # 使用指定配置文件启动监控
  %(prog)s --validate config.yaml        # 验证配置文件格式
  %(prog)s --check-once config.yaml      # 执行一次健康探测
  %(prog)s --test-alerts config.yaml     # 测试告警系统
  %(prog)s --version                      # 显示版本信息

支持的自愈引擎:
  - container (docker / docker-compose)
  - orchestrator (kubectl rollout restart)

配置文件格式请参考 config/example.yaml
        """
    )

    parser.add_argument(
        'config_file',
        nargs='?',
        help='YAML配置文件路径'
    )

    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        '--validate',
        action='store_true',
        help='验证配置文件格式并退出'
    )
    mode_group.add_argument(
        '--test-alerts',
        action='store_true',
        help='向所有告警器发送测试告警并退出'
    )
    mode_group.add_argument(
        '--check-once',
        action='store_true',
        help='执行一次健康探测后退出'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='设置日志级别（覆盖配置文件设置）'
    )

    parser.add_argument(
        '--log-file',
        help='日志文件路径（覆盖配置文件设置）'
    )

    return parser


def validate_config_file(config_path: str) -> bool:
    """验证配置文件

    Args:
        config_path: 配置文件路径

    Returns:
        验证是否成功
    """
    print(f"正在验证配置文件: {config_path}")

    try:
        config_manager = ConfigManager(config_path)
        config_manager.load_config()
        settings = config_manager.get_settings()
        remediator_factory.create_remediator(settings.remediation_engine,
                                             settings.service_name,
                                             settings.remediation_config())
    except ConfigError as e:
        print(f"❌ 配置文件验证失败: {e.message}")
        return False

    alerts = config_manager.get_alerts_config()
    print("✅ 配置文件验证成功!")
    print(f"   - 服务名称: {settings.service_name}")
    print(f"   - 健康检查地址: {settings.health_check_url}")
    print(f"   - 自愈引擎: {settings.remediation_engine.value}")
    print(f"   - 检查间隔: {settings.check_interval}s, 失败阈值: {settings.failure_threshold}")
    print(f"   - 告警配置数量: {len(alerts)}")
    for alert_config in alerts:
        print(f"     * {alert_config.get('name', 'unnamed')} ({alert_config.get('type', 'unknown')})")

    return True


async def run_alert_test(config_path: str) -> bool:
    """测试告警系统

    Args:
        config_path: 配置文件路径

    Returns:
        所有告警器是否都发送成功
    """
    print(f"正在测试告警系统: {config_path}")

    try:
        test_app = AutoHealerApp(config_path)
        await test_app.initialize()
    except AutoHealerError as e:
        print(f"❌ 告警系统测试失败: {e.message}")
        return False

    alert_manager = test_app.alert_manager
    if alert_manager.get_alerter_count() == 0:
        print("❌ 没有配置可用的告警器")
        return False

    event = AlertEvent(
        kind=AlertKind.RECOVERED,
        service_name=test_app.settings.service_name,
        detail="这是一条测试告警，用于验证告警通道配置是否正确",
        metadata={'test': True}
    )
    results = await alert_manager.send_alert(event)

    for name, success in results.items():
        print(f"   {'✅' if success else '❌'} {name}")

    success = all(results.values())
    if success:
        print("✅ 告警系统测试成功!")
    else:
        print("❌ 告警系统测试失败!")
    return success


async def check_once(config_path: str) -> bool:
    """执行一次健康探测，不触发自愈

    Args:
        config_path: 配置文件路径

    Returns:
        服务是否健康
    """
    print(f"正在执行健康探测: {config_path}")

    try:
        test_app = AutoHealerApp(config_path)
        await test_app.initialize()
    except AutoHealerError as e:
        print(f"❌ 健康探测失败: {e.message}")
        return False

    result = await test_app.probe.check_health()
    name = test_app.settings.service_name

    if result.success:
        print(f"   ✅ {name}: 健康 (HTTP {result.status_code}, 响应时间: {result.latency:.3f}s)")
    else:
        print(f"   ❌ {name}: 不健康 - {result.error}")
    return result.success


async def main(argv: Optional[List[str]] = None) -> int:
    """主函数

    Args:
        argv: 命令行参数，默认读取 sys.argv

    Returns:
        进程退出码
    """
    global app

    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.config_file:
        parser.print_help()
        return 1

    config_path = args.config_file

    if args.validate:
        return 0 if validate_config_file(config_path) else 1

    if args.test_alerts:
        return 0 if await run_alert_test(config_path) else 1

    if args.check_once:
        return 0 if await check_once(config_path) else 1

    app = AutoHealerApp(config_path, log_level=args.log_level, log_file=args.log_file)
    try:
        await app.initialize()
        install_signal_handlers(asyncio.get_running_loop())

        print(f"服务自愈监控 v{__version__} 已启动")
        print(f"配置文件: {config_path}")
        print("按 Ctrl+C 停止程序")

        await app.start()

    except ConfigError as e:
        print(f"配置错误: {e.format_error()}", file=sys.stderr)
        return 1
    except AutoHealerError as e:
        print(f"服务自愈监控错误: {e.format_error()}", file=sys.stderr)
        return 1
    finally:
        await app.stop()
        log_manager.cleanup()
        app = None

    return 0


def run():
    """命令行入口"""
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        print("\n用户中断程序")
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
