"""
评分计算基础设施
提供评委统计、Z-score标准化、加权聚合、排名和晋级选择策略
"""

from .types import (
    Criterion,
    Evaluation,
    JudgeStatistic,
    NormalizedEvaluation,
    TeamAggregate,
    JudgeBreakdown,
    TeamRoundResult,
    SelectionResult,
)
from .judge_statistics import compute_judge_statistics, is_numeric_score
from .normalization import z_score, normalize_evaluations, NormalizationSummary
from .aggregation import aggregate_team_scores
from .ranking import rank_teams, split_tie_groups, percentile_for_rank
from .selection_policies import (
    SelectionMode,
    SelectionPolicy,
    GlobalTopKPolicy,
    PerJudgeTopNPolicy,
    get_selection_policy,
    flatten_breakdown,
)

__all__ = [
    # 数据类型
    'Criterion',
    'Evaluation',
    'JudgeStatistic',
    'NormalizedEvaluation',
    'TeamAggregate',
    'JudgeBreakdown',
    'TeamRoundResult',
    'SelectionResult',
    # 统计与标准化
    'compute_judge_statistics',
    'is_numeric_score',
    'z_score',
    'normalize_evaluations',
    'NormalizationSummary',
    # 聚合与排名
    'aggregate_team_scores',
    'rank_teams',
    'split_tie_groups',
    'percentile_for_rank',
    # 晋级选择策略
    'SelectionMode',
    'SelectionPolicy',
    'GlobalTopKPolicy',
    'PerJudgeTopNPolicy',
    'get_selection_policy',
    'flatten_breakdown',
]
