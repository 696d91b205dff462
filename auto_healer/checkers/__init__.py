"""健康检查器模块"""

from .base import BaseHealthChecker
from .http_probe import HttpHealthProbe

__all__ = ['BaseHealthChecker', 'HttpHealthProbe']
