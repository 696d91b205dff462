"""自愈器模块"""

from .base import BaseRemediator
from .container_remediator import ContainerRemediator
from .factory import RemediatorFactory, remediator_factory, register_remediator
from .orchestrator_remediator import OrchestratorRemediator

__all__ = ['BaseRemediator', 'RemediatorFactory', 'remediator_factory',
           'register_remediator', 'ContainerRemediator', 'OrchestratorRemediator']
