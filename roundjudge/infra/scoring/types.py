"""
评分数据类型
轮次评审中的评分标准、评审记录、评委统计量与团队结果
"""

from dataclasses import dataclass, field
from statistics import median
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Criterion:
    """评分标准: 属于某一轮次，权重无需归一到固定总和"""
    id: str
    weight: float
    max_marks: float
    display_order: int = 0
    name: str = ''
    min_marks: float = 0.0


@dataclass(frozen=True)
class Evaluation:
    """一位评委对一支团队在某一轮次的已提交评分（criterion_id -> 原始分）"""
    judge_id: str
    team_id: str
    scores: Dict[str, Any]
    evaluation_id: Optional[int] = None


@dataclass(frozen=True)
class JudgeStatistic:
    """评委在本轮全部原始分（跨标准、跨团队汇总）上的均值与总体标准差"""
    judge_id: str
    mean: float
    std_dev: float
    count: int


@dataclass
class NormalizedEvaluation:
    """单条评审记录的标准化结果"""
    judge_id: str
    team_id: str
    raw_total: float
    weighted_total: float
    judge_mean: float
    judge_std: float
    z_scores: Dict[str, float] = field(default_factory=dict)
    weighted_z_scores: Dict[str, float] = field(default_factory=dict)


@dataclass
class TeamAggregate:
    """团队聚合结果（尚未排名）"""
    team_id: str
    aggregated_z: float
    criterion_z: Dict[str, float]
    raw_totals: List[float]
    judge_count: int
    evaluations: List[NormalizedEvaluation] = field(default_factory=list)

    @property
    def mean_raw_total(self) -> float:
        return sum(self.raw_totals) / len(self.raw_totals) if self.raw_totals else 0.0

    @property
    def median_raw_total(self) -> float:
        return float(median(self.raw_totals)) if self.raw_totals else 0.0


@dataclass
class JudgeBreakdown:
    """团队结果中单个评委的明细，用于展示、审计以及按评委晋级"""
    judge_id: str
    team_id: str
    raw_total: float
    weighted_z: float
    judge_mean: float
    judge_std: float
    z_scores: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'judge_id': self.judge_id,
            'team_id': self.team_id,
            'raw_total': self.raw_total,
            'weighted_z': self.weighted_z,
            'judge_mean': self.judge_mean,
            'judge_std': self.judge_std,
            'z_scores': dict(self.z_scores),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JudgeBreakdown':
        return cls(
            judge_id=data['judge_id'],
            team_id=data['team_id'],
            raw_total=float(data['raw_total']),
            weighted_z=float(data['weighted_z']),
            judge_mean=float(data['judge_mean']),
            judge_std=float(data['judge_std']),
            z_scores={k: float(v) for k, v in (data.get('z_scores') or {}).items()},
        )


@dataclass
class TeamRoundResult:
    """团队在某一轮次的最终结果"""
    team_id: str
    aggregated_z: float
    rank: int
    percentile: float
    is_tied: bool = False
    judge_count: int = 0
    mean_raw_total: float = 0.0
    median_raw_total: float = 0.0
    criterion_z: Dict[str, float] = field(default_factory=dict)
    breakdown: List[JudgeBreakdown] = field(default_factory=list)


@dataclass
class SelectionResult:
    """晋级选择结果（晋级写入前不持久化）"""
    selected_team_ids: List[str]
    mode: str
    parameters: Dict[str, Any]
    details: Dict[str, Any] = field(default_factory=dict)
