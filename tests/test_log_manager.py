"""
日志管理器测试模块
"""

import logging
import logging.handlers
import re
import tempfile
from pathlib import Path

import pytest

from auto_healer.utils.log_manager import (
    LogManager, LogLevel, ISO8601Formatter, log_manager
)


class TestLogManager:
    """日志管理器测试类"""

    def setup_method(self):
        """每个测试方法前重置单例实例"""
        LogManager._instance = None
        LogManager._initialized = False
        self.temp_dir = tempfile.TemporaryDirectory()

    def teardown_method(self):
        LogManager._instance.cleanup()
        LogManager._instance = log_manager
        self.temp_dir.cleanup()

    def test_singleton_pattern(self):
        """测试单例模式"""
        manager1 = LogManager()
        manager2 = LogManager()

        assert manager1 is manager2

    def test_default_configuration(self):
        """测试默认配置"""
        manager = LogManager()

        assert manager._log_level == LogLevel.INFO
        assert manager._log_file is None
        assert manager._max_file_size == 10 * 1024 * 1024
        assert manager._backup_count == 5
        assert manager._enable_console is True
        assert manager._enable_file is False

    def test_configure_log_level(self):
        """测试日志级别配置"""
        manager = LogManager()

        manager.configure({'log_level': 'debug'})
        assert manager._log_level == LogLevel.DEBUG

        with pytest.raises(ValueError, match="无效的日志级别"):
            manager.configure({'log_level': 'LOUD'})

    def test_logger_namespace(self):
        """测试日志记录器名称前缀且不向上传播"""
        manager = LogManager()
        logger = manager.get_logger('supervisor.web')

        assert logger.name == 'auto_healer.supervisor.web'
        assert logger.propagate is False
        assert manager.get_logger('supervisor.web') is logger

    def test_file_output_format_and_append(self):
        """测试日志文件格式为 <ISO8601> [<级别>] <消息>，并以追加方式写入"""
        log_file = Path(self.temp_dir.name) / 'logs' / 'healer.log'
        log_file.parent.mkdir()
        log_file.write_text("已有内容\n", encoding='utf-8')

        manager = LogManager()
        manager.configure({'log_file': str(log_file), 'enable_console': False})
        logger = manager.get_logger('format_test')
        logger.warning("服务 web 健康检查失败")

        for handler in logger.handlers:
            handler.flush()

        lines = log_file.read_text(encoding='utf-8').splitlines()
        assert lines[0] == "已有内容"
        assert re.match(
            r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2} \[WARNING\] 服务 web 健康检查失败$',
            lines[1]
        )

    def test_reconfigure_updates_existing_loggers(self):
        """测试重新配置后已有的日志记录器使用新配置"""
        manager = LogManager()
        logger = manager.get_logger('reconfigure_test')
        assert logger.level == logging.INFO

        log_file = Path(self.temp_dir.name) / 'reconfigure.log'
        manager.configure({'log_level': 'DEBUG', 'log_file': str(log_file)})

        assert logger.level == logging.DEBUG
        handler_types = {type(handler) for handler in logger.handlers}
        assert logging.handlers.RotatingFileHandler in handler_types
        assert logging.StreamHandler in handler_types

    def test_set_level(self):
        manager = LogManager()
        logger = manager.get_logger('level_test')

        manager.set_level(LogLevel.ERROR)

        assert logger.level == logging.ERROR
        assert all(handler.level == logging.ERROR for handler in logger.handlers)

    def test_get_log_stats(self):
        manager = LogManager()
        manager.get_logger('stats_test')

        stats = manager.get_log_stats()

        assert stats['loggers_count'] == 1
        assert stats['log_level'] == 'INFO'
        assert stats['file_logging_enabled'] is False

    def test_cleanup(self):
        manager = LogManager()
        logger = manager.get_logger('cleanup_test')

        manager.cleanup()

        assert logger.handlers == []
        assert manager._loggers == {}


def test_iso8601_formatter():
    """测试时间戳格式"""
    formatter = ISO8601Formatter('%(asctime)s [%(levelname)s] %(message)s')
    record = logging.LogRecord('test', logging.INFO, __file__, 1, "probe ok", None, None)

    formatted = formatter.format(record)

    assert re.match(r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2} \[INFO\] probe ok$',
                    formatted)
