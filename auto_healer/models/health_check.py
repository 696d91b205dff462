"""健康检查、自愈和告警相关的数据模型"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional


class HealthTransition(Enum):
    """服务健康状态"""
    HEALTHY = "healthy"
    DEGRADING = "degrading"
    CRITICAL = "critical"
    RECOVERING = "recovering"


class RemediationEngine(Enum):
    """自愈操作的执行引擎"""
    CONTAINER_RESTART = "container"
    ORCHESTRATOR_ROLLOUT = "orchestrator"


class AlertKind(Enum):
    """告警事件类型"""
    THRESHOLD_BREACHED = "threshold_breached"
    RESTARTED = "restarted"
    RESTART_FAILED = "restart_failed"
    RECOVERED = "recovered"


@dataclass(frozen=True)
class ProbeResult:
    """单次健康探测结果"""
    success: bool
    latency: float
    status_code: Optional[int] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    target_url: str = ''


@dataclass
class HealthState:
    """服务健康状态，只由监督循环修改"""
    consecutive_failures: int = 0
    last_transition: HealthTransition = HealthTransition.HEALTHY
    last_remediation_attempt: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'consecutive_failures': self.consecutive_failures,
            'last_transition': self.last_transition.value,
            'last_remediation_attempt': (
                self.last_remediation_attempt.isoformat()
                if self.last_remediation_attempt else None
            )
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HealthState':
        last_attempt = data.get('last_remediation_attempt')
        return cls(
            consecutive_failures=max(0, int(data.get('consecutive_failures', 0))),
            last_transition=HealthTransition(data.get('last_transition', 'healthy')),
            last_remediation_attempt=(
                datetime.fromisoformat(last_attempt) if last_attempt else None
            )
        )


@dataclass(frozen=True)
class RemediationOutcome:
    """自愈操作结果"""
    attempted: bool
    succeeded: bool
    engine: RemediationEngine
    message: str
    duration: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class AlertEvent:
    """状态转换时产生的告警事件"""
    kind: AlertKind
    service_name: str
    detail: str
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AlertMessage:
    """渲染后交给告警器发送的消息"""
    subject: str
    body: str
    recipient: Optional[str]
    event: AlertEvent
