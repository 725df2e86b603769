"""轮次计算运行记录模块"""

import secrets
from datetime import datetime
from typing import Any, Dict, Optional


class ComputeRun:
    """计算运行记录: 生成运行ID，收集参数与统计信息，生成计算日志"""

    METHOD = 'Z_SCORE'

    def __init__(self, round_id: str, computed_by: Optional[str] = None, run_id: Optional[str] = None):
        self.run_id = run_id or self.generate_run_id()
        self.round_id = round_id
        self.computed_by = computed_by
        self.started_at = datetime.now()
        self.params: Dict[str, Any] = {}
        self.stats: Dict[str, Any] = {}

    @staticmethod
    def generate_run_id() -> str:
        """生成唯一的运行ID，格式: YYYYMMDD_HHMMSS_xxxxxx"""
        return f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{secrets.token_hex(3)}"

    def set_params(self, **params: Any) -> None:
        self.params.update(params)

    def set_stats(self, **stats: Any) -> None:
        self.stats.update(stats)

    def to_log_record(self) -> Dict[str, Any]:
        """转换为 round_compute_logs 的一行"""
        return {
            'run_id': self.run_id,
            'round_id': self.round_id,
            'method': self.METHOD,
            'params': dict(self.params),
            'teams_evaluated': self.stats.get('teams_evaluated', 0),
            'judges_count': self.stats.get('judges_count', 0),
            'computed_by': self.computed_by,
            'computed_at': self.started_at.strftime('%Y-%m-%d %H:%M:%S'),
        }

    def __str__(self) -> str:
        return f"ComputeRun(run_id={self.run_id}, round_id={self.round_id})"

    def __repr__(self) -> str:
        return self.__str__()
