"""
排名模块
按 aggregated_z 降序排名，依次应用并列判定规则，并计算百分位
"""

from collections import Counter
from typing import Callable, Iterable, List, Tuple

from .types import Criterion, JudgeBreakdown, TeamAggregate, TeamRoundResult

DEFAULT_TIE_EPSILON = 1e-4

TieKey = Tuple[Callable[[TeamAggregate], float], float]


def criteria_by_priority(criteria: Iterable[Criterion]) -> List[Criterion]:
    """并列判定时的标准顺序：权重降序，同权重按 display_order"""
    return sorted(criteria, key=lambda c: (-c.weight, c.display_order, c.id))


def tie_break_keys(priority: List[Criterion], epsilon: float = DEFAULT_TIE_EPSILON) -> List[TieKey]:
    """
    排名键及各自的容差，按判定顺序排列

    1. aggregated_z
    2. 按权重从高到低，各标准的 z
    3. 原始总分均值
    4. 原始总分中位数
    5. 评委数量（精确比较）
    """
    keys: List[TieKey] = [(lambda a: a.aggregated_z, epsilon)]
    for criterion in priority:
        keys.append((lambda a, cid=criterion.id: a.criterion_z.get(cid, 0.0), epsilon))
    keys.append((lambda a: a.mean_raw_total, epsilon))
    keys.append((lambda a: a.median_raw_total, epsilon))
    keys.append((lambda a: float(a.judge_count), 0.0))
    return keys


def split_tie_groups(
    aggregates: List[TeamAggregate],
    keys: List[TieKey],
) -> List[List[TeamAggregate]]:
    """
    逐个键切分并列组

    每个键先按降序排序，再从组首成员起划分：与组首相差不超过容差的成员同组，
    因此一个组的跨度不会超过容差。组内再用下一个键继续切分，键用尽后仍在同组的团队完全并列。
    """
    if len(aggregates) <= 1 or not keys:
        return [sorted(aggregates, key=lambda a: a.team_id)]

    key, epsilon = keys[0]
    ordered = sorted(aggregates, key=lambda a: (-key(a), a.team_id))

    groups: List[List[TeamAggregate]] = []
    for aggregate in ordered:
        if groups and key(groups[-1][0]) - key(aggregate) <= epsilon:
            groups[-1].append(aggregate)
        else:
            groups.append([aggregate])

    result: List[List[TeamAggregate]] = []
    for group in groups:
        result.extend(split_tie_groups(group, keys[1:]))
    return result


def percentile_for_rank(rank: int, team_count: int) -> float:
    """percentile = 100 * (n - rank) / (n - 1)，只有一支团队时为100"""
    if team_count > 1:
        return 100.0 * (team_count - rank) / (team_count - 1)
    return 100.0


def rank_teams(
    aggregates: Iterable[TeamAggregate],
    criteria: Iterable[Criterion],
    tie_epsilon: float = DEFAULT_TIE_EPSILON,
) -> List[TeamRoundResult]:
    """
    生成最终排名（标准竞赛排名：1, 1, 3, 4）

    规则全部用尽仍并列的团队名次相同，下一名次跳过；完全并列的团队按 team_id 输出。
    """
    keys = tie_break_keys(criteria_by_priority(criteria), tie_epsilon)
    aggregates = list(aggregates)
    if not aggregates:
        return []
    groups = split_tie_groups(aggregates, keys)

    ranked: List[Tuple[TeamAggregate, int]] = []
    for group in groups:
        rank = len(ranked) + 1
        ranked.extend((aggregate, rank) for aggregate in group)

    team_count = len(ranked)
    rank_counts = Counter(rank for _, rank in ranked)
    results: List[TeamRoundResult] = []
    for aggregate, rank in ranked:
        results.append(TeamRoundResult(
            team_id=aggregate.team_id,
            aggregated_z=aggregate.aggregated_z,
            rank=rank,
            percentile=percentile_for_rank(rank, team_count),
            is_tied=rank_counts[rank] > 1,
            judge_count=aggregate.judge_count,
            mean_raw_total=aggregate.mean_raw_total,
            median_raw_total=aggregate.median_raw_total,
            criterion_z=dict(aggregate.criterion_z),
            breakdown=[
                JudgeBreakdown(
                    judge_id=e.judge_id,
                    team_id=e.team_id,
                    raw_total=e.raw_total,
                    weighted_z=e.weighted_total,
                    judge_mean=e.judge_mean,
                    judge_std=e.judge_std,
                    z_scores=dict(e.z_scores),
                )
                for e in aggregate.evaluations
            ],
        ))

    return results
