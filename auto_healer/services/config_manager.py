"""配置管理器"""

import os
import yaml
from typing import Dict, Any, List, Optional

from ..models.settings import HealerSettings
from ..utils.exceptions import ConfigError, ErrorCode
from ..utils.config_validator import ConfigValidator
from ..utils.log_manager import get_logger


class ConfigManager:
    """配置管理器，负责YAML配置文件的加载、解析和验证"""

    def __init__(self, config_path: str):
        """
        初始化配置管理器

        Args:
            config_path: 配置文件路径
        """
        self.config_path = config_path
        self.config: Dict[str, Any] = {}
        self.last_modified: Optional[float] = None
        self.logger = get_logger('config_manager')

    def load_config(self) -> Dict[str, Any]:
        """
        加载YAML配置文件

        Returns:
            Dict[str, Any]: 配置字典

        Raises:
            ConfigError: 配置加载或验证失败
        """
        self.logger.info(f"开始加载配置文件: {self.config_path}")

        if not os.path.exists(self.config_path):
            self.logger.error(f"配置文件不存在: {self.config_path}")
            raise ConfigError(f"配置文件不存在: {self.config_path}",
                              error_code=ErrorCode.CONFIG_FILE_NOT_FOUND,
                              config_path=self.config_path)

        try:
            with open(self.config_path, 'r', encoding='utf-8') as file:
                config = yaml.safe_load(file)
        except yaml.YAMLError as e:
            self.logger.error(f"YAML格式错误: {e}")
            raise ConfigError(f"YAML格式错误: {e}", error_code=ErrorCode.CONFIG_PARSE_ERROR,
                              config_path=self.config_path, cause=e)
        except PermissionError as e:
            self.logger.error(f"没有权限读取配置文件: {self.config_path}")
            raise ConfigError(f"没有权限读取配置文件: {self.config_path}",
                              error_code=ErrorCode.CONFIG_FILE_NOT_FOUND,
                              config_path=self.config_path, cause=e)
        except OSError as e:
            self.logger.error(f"读取配置文件失败: {e}")
            raise ConfigError(f"读取配置文件失败: {e}", error_code=ErrorCode.CONFIG_FILE_NOT_FOUND,
                              config_path=self.config_path, cause=e)

        if config is None:
            self.logger.error("配置文件为空")
            raise ConfigError("配置文件为空", error_code=ErrorCode.CONFIG_PARSE_ERROR,
                              config_path=self.config_path)

        self.logger.debug("开始验证配置文件内容")
        ConfigValidator.validate_config(config)

        alerts_count = len(config.get('alerts') or [])
        self.logger.info(
            f"配置验证成功，监控服务 {config['service']['service_name']}，"
            f"包含 {alerts_count} 个告警配置"
        )

        old_config = self.config.copy() if self.config else {}
        self.config = config
        self.last_modified = os.path.getmtime(self.config_path)

        if old_config:
            self._log_config_changes(old_config, config)
        else:
            self.logger.info("首次加载配置文件")

        return self.config

    def get_settings(self) -> HealerSettings:
        """
        根据当前配置创建运行参数

        Returns:
            HealerSettings: 运行参数
        """
        return HealerSettings.from_config(self.config)

    def get_global_config(self) -> Dict[str, Any]:
        return self.config.get('global') or {}

    def get_service_config(self) -> Dict[str, Any]:
        return self.config.get('service') or {}

    def get_notifications_config(self) -> Dict[str, Any]:
        return self.config.get('notifications') or {}

    def get_alerts_config(self) -> List[Dict[str, Any]]:
        return self.config.get('alerts') or []

    def get_logging_config(self, log_level: Optional[str] = None,
                           log_file: Optional[str] = None) -> Dict[str, Any]:
        """
        生成日志管理器使用的配置，命令行参数优先于配置文件

        Args:
            log_level: 命令行指定的日志级别
            log_file: 命令行指定的日志文件

        Returns:
            Dict[str, Any]: 日志配置
        """
        global_config = self.get_global_config()
        logging_config = {
            'log_level': log_level or global_config.get('log_level', 'INFO'),
            'log_file': log_file or global_config.get('log_file', 'logs/auto_healer.log'),
        }
        if 'max_log_size' in global_config:
            logging_config['max_file_size'] = global_config['max_log_size']
        if 'log_backup_count' in global_config:
            logging_config['backup_count'] = global_config['log_backup_count']
        return logging_config

    def is_config_changed(self) -> bool:
        """
        检查配置文件是否已修改

        Returns:
            bool: 配置文件是否已修改
        """
        try:
            if not os.path.exists(self.config_path):
                return False

            current_modified = os.path.getmtime(self.config_path)
            return self.last_modified is None or current_modified > self.last_modified

        except OSError:
            return False

    def reload_config(self) -> Dict[str, Any]:
        """
        重新加载配置文件，失败时保留原配置

        Returns:
            Dict[str, Any]: 新的配置字典

        Raises:
            ConfigError: 配置重新加载失败
        """
        self.logger.info("重新加载配置文件")
        try:
            return self.load_config()
        except ConfigError as e:
            raise ConfigError(f"配置重新加载失败，继续使用原配置: {e.message}",
                              error_code=ErrorCode.CONFIG_RELOAD_ERROR,
                              config_path=self.config_path, cause=e)

    def _log_config_changes(self, old_config: Dict[str, Any], new_config: Dict[str, Any]) -> None:
        """
        记录配置变更

        Args:
            old_config: 旧配置
            new_config: 新配置
        """
        old_service = old_config.get('service') or {}
        new_service = new_config.get('service') or {}
        for key in sorted(set(old_service) | set(new_service)):
            if old_service.get(key) != new_service.get(key):
                self.logger.info(f"服务配置项已修改: {key}: {old_service.get(key)} -> {new_service.get(key)}")

        old_alerts = old_config.get('alerts') or []
        new_alerts = new_config.get('alerts') or []
        if len(old_alerts) != len(new_alerts):
            self.logger.info(f"告警配置数量变更: {len(old_alerts)} -> {len(new_alerts)}")
        elif old_alerts != new_alerts:
            self.logger.info("告警配置已修改")

        for section in ('global', 'remediation', 'notifications'):
            if old_config.get(section) != new_config.get(section):
                self.logger.info(f"{section} 配置已修改")
                self.logger.debug(f"旧{section}配置: {old_config.get(section)}")
                self.logger.debug(f"新{section}配置: {new_config.get(section)}")
