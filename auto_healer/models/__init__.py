"""数据模型模块"""

from .health_check import (
    AlertEvent, AlertKind, AlertMessage, HealthState, HealthTransition,
    ProbeResult, RemediationEngine, RemediationOutcome
)
from .settings import HealerSettings

__all__ = ['AlertEvent', 'AlertKind', 'AlertMessage', 'HealthState',
           'HealthTransition', 'ProbeResult', 'RemediationEngine',
           'RemediationOutcome', 'HealerSettings']
