"""
评委统计模块
汇总每位评委在一个轮次内给出的全部原始分，计算均值和总体标准差
"""

import math
from collections import defaultdict
from numbers import Real
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from .types import Criterion, Evaluation, JudgeStatistic


def is_numeric_score(value: Any) -> bool:
    """是否为可参与计算的原始分（有限实数，布尔值除外）"""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(float(value))


def collect_judge_scores(
    evaluations: Iterable[Evaluation],
    criteria: Optional[Iterable[Criterion]] = None,
) -> Dict[str, List[float]]:
    """按评委汇总原始分；给定评分标准时，忽略不属于本轮的标准"""
    known_ids = {c.id for c in criteria} if criteria is not None else None
    pooled: Dict[str, List[float]] = defaultdict(list)

    for evaluation in evaluations:
        for criterion_id, value in (evaluation.scores or {}).items():
            if known_ids is not None and criterion_id not in known_ids:
                continue
            if not is_numeric_score(value):
                continue
            pooled[evaluation.judge_id].append(float(value))

    return dict(pooled)


def compute_judge_statistics(
    evaluations: Iterable[Evaluation],
    criteria: Optional[Iterable[Criterion]] = None,
) -> Dict[str, JudgeStatistic]:
    """
    计算每位评委的统计量

    mean = sum(scores) / n
    std_dev = sqrt(sum((score - mean)^2) / n)   （总体标准差）

    没有任何有效分数的评委不出现在结果中；所有分数相同的评委 std_dev 为 0。
    """
    stats: Dict[str, JudgeStatistic] = {}

    for judge_id, values in collect_judge_scores(evaluations, criteria).items():
        scores = np.asarray(values, dtype=np.float64)
        mean = float(np.mean(scores))
        # 单一取值 -> std_dev 精确为0
        std_dev = 0.0 if np.ptp(scores) == 0 else float(np.std(scores, ddof=0))
        stats[judge_id] = JudgeStatistic(
            judge_id=judge_id,
            mean=mean,
            std_dev=std_dev,
            count=int(scores.size),
        )

    return stats
