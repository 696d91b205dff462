"""自愈器工厂"""

from typing import Dict, Type, Any

from .base import BaseRemediator
from ..models.health_check import RemediationEngine
from ..utils.exceptions import ConfigError


class RemediatorFactory:
    """自愈器工厂类，按配置选择唯一的自愈引擎"""

    def __init__(self):
        """初始化工厂"""
        self._remediators: Dict[RemediationEngine, Type[BaseRemediator]] = {}

    def register_remediator(self, engine: RemediationEngine,
                            remediator_class: Type[BaseRemediator]):
        """
        注册自愈器类

        Args:
            engine: 自愈引擎
            remediator_class: 自愈器类

        Raises:
            ConfigError: 注册失败
        """
        if not issubclass(remediator_class, BaseRemediator):
            raise ConfigError(f"自愈器类 {remediator_class.__name__} 必须继承自 BaseRemediator")

        if engine in self._remediators:
            raise ConfigError(f"自愈引擎 '{engine.value}' 已经注册了自愈器")

        self._remediators[engine] = remediator_class

    def create_remediator(self, engine: RemediationEngine, service_name: str,
                          config: Dict[str, Any]) -> BaseRemediator:
        """
        创建自愈器实例

        Args:
            engine: 自愈引擎
            service_name: 服务名称
            config: 引擎配置

        Returns:
            BaseRemediator: 自愈器实例

        Raises:
            ConfigError: 引擎不支持或配置无效
        """
        if engine not in self._remediators:
            raise ConfigError(f"不支持的自愈引擎: '{engine.value}'")

        remediator = self._remediators[engine](service_name, config)
        if not remediator.validate_config():
            raise ConfigError(f"服务 '{service_name}' 的自愈引擎配置无效: {engine.value}")

        return remediator

    def get_supported_engines(self) -> list:
        """
        获取支持的自愈引擎列表

        Returns:
            list: 引擎名称列表
        """
        return [engine.value for engine in self._remediators]


# 全局工厂实例
remediator_factory = RemediatorFactory()


def register_remediator(engine: RemediationEngine):
    """
    装饰器：注册自愈器类

    Args:
        engine: 自愈引擎

    Returns:
        装饰器函数
    """
    def decorator(remediator_class: Type[BaseRemediator]):
        remediator_factory.register_remediator(engine, remediator_class)
        return remediator_class

    return decorator
