"""连续失败计数器

负责维护 HealthState、探测历史和状态转换检测
"""

import json
import os
from collections import deque
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Deque, Dict, List, Optional, Any

from ..models.health_check import AlertKind, HealthState, HealthTransition, ProbeResult
from ..utils.log_manager import get_logger


class FailureCounter:
    """连续失败计数器

    根据探测结果更新 HealthState，在计数达到阈值或从失败中恢复时返回对应的告警类型。
    只能由监督循环调用，其他组件通过 snapshot() 获得副本。
    """

    def __init__(self, threshold: int, persistence_file: Optional[str] = None,
                 history_size: int = 200):
        """初始化计数器

        Args:
            threshold: 连续失败阈值
            persistence_file: 状态持久化文件路径，如果为None则不持久化
            history_size: 保留的探测历史条数
        """
        if threshold <= 0:
            raise ValueError("失败阈值必须是正整数")

        self.threshold = threshold
        self.state = HealthState()
        self.history: Deque[ProbeResult] = deque(maxlen=history_size)
        self.persistence_file = persistence_file
        self.logger = get_logger('failure_counter')

        self.total_probes = 0
        self.total_failures = 0

        if self.persistence_file:
            self._load_state()

    @property
    def consecutive_failures(self) -> int:
        return self.state.consecutive_failures

    @property
    def is_critical(self) -> bool:
        return self.state.consecutive_failures >= self.threshold

    def record_success(self, result: ProbeResult) -> Optional[AlertKind]:
        """记录一次成功的探测

        Args:
            result: 探测结果

        Returns:
            计数大于0时返回 AlertKind.RECOVERED，否则返回None
        """
        self._append_history(result)
        previous = self.state.consecutive_failures

        self.state.consecutive_failures = 0
        self.state.last_transition = HealthTransition.HEALTHY
        self._save_state()

        if previous > 0:
            self.logger.info(f"连续 {previous} 次失败后探测恢复成功")
            return AlertKind.RECOVERED
        return None

    def record_failure(self, result: ProbeResult) -> Optional[AlertKind]:
        """记录一次失败的探测

        Args:
            result: 探测结果

        Returns:
            计数恰好达到阈值时返回 AlertKind.THRESHOLD_BREACHED，否则返回None
        """
        self._append_history(result)
        self.total_failures += 1

        self.state.consecutive_failures += 1
        count = self.state.consecutive_failures

        if count >= self.threshold:
            self.state.last_transition = HealthTransition.CRITICAL
        else:
            self.state.last_transition = HealthTransition.DEGRADING
        self._save_state()

        if count == self.threshold:
            self.logger.warning(f"连续失败次数达到阈值: {count}/{self.threshold}")
            return AlertKind.THRESHOLD_BREACHED
        return None

    def record_remediation_attempt(self, when: Optional[datetime] = None):
        """记录一次自愈尝试的时间"""
        self.state.last_remediation_attempt = when or datetime.now()
        self._save_state()

    def reset_after_remediation(self):
        """自愈成功后清零计数，等待下一次成功探测确认"""
        self.state.consecutive_failures = 0
        self.state.last_transition = HealthTransition.RECOVERING
        self._save_state()

    def snapshot(self) -> HealthState:
        """返回当前状态的副本"""
        return replace(self.state)

    def _append_history(self, result: ProbeResult):
        self.history.append(result)
        self.total_probes += 1

    def get_history(self, limit: Optional[int] = None) -> List[ProbeResult]:
        """获取探测历史，按时间倒序

        Args:
            limit: 限制返回记录数量

        Returns:
            探测历史列表
        """
        history = list(reversed(self.history))
        if limit:
            history = history[:limit]
        return history

    def get_stats(self) -> Dict[str, Any]:
        """获取计数器统计信息

        Returns:
            统计信息字典
        """
        latencies = [r.latency for r in self.history]
        recent_success = sum(1 for r in self.history if r.success)

        return {
            'state': self.state.to_dict(),
            'threshold': self.threshold,
            'total_probes': self.total_probes,
            'total_failures': self.total_failures,
            'recent_success_rate': recent_success / len(self.history) if self.history else 0,
            'avg_latency': sum(latencies) / len(latencies) if latencies else 0
        }

    def _save_state(self):
        """保存状态到文件"""
        if not self.persistence_file:
            return

        try:
            Path(self.persistence_file).parent.mkdir(parents=True, exist_ok=True)

            state_data = {
                'state': self.state.to_dict(),
                'last_updated': datetime.now().isoformat()
            }

            with open(self.persistence_file, 'w', encoding='utf-8') as f:
                json.dump(state_data, f, ensure_ascii=False, indent=2)

        except OSError as e:
            self.logger.error(f"保存状态失败: {e}")

    def _load_state(self):
        """从文件加载状态，并保证 CRITICAL 与计数一致"""
        if not self.persistence_file or not os.path.exists(self.persistence_file):
            return

        try:
            with open(self.persistence_file, 'r', encoding='utf-8') as f:
                state_data = json.load(f)

            state = HealthState.from_dict(state_data.get('state', {}))
        except (OSError, ValueError, TypeError) as e:
            self.logger.error(f"加载状态失败: {e}")
            return

        if state.consecutive_failures >= self.threshold:
            state.last_transition = HealthTransition.CRITICAL
        elif state.consecutive_failures > 0:
            state.last_transition = HealthTransition.DEGRADING
        elif state.last_transition in (HealthTransition.CRITICAL, HealthTransition.DEGRADING):
            state.last_transition = HealthTransition.HEALTHY

        self.state = state
        self.logger.info(
            f"从 {self.persistence_file} 加载了状态数据: 连续失败 {state.consecutive_failures} 次")
