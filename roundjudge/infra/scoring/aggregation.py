"""
加权聚合模块
把每条评审的加权 z 总分按团队取平均，得到团队的 aggregated_z
"""

from collections import defaultdict
from typing import Dict, Iterable, List

import numpy as np

from .types import Criterion, NormalizedEvaluation, TeamAggregate


def aggregate_team_scores(
    normalized: Iterable[NormalizedEvaluation],
    criteria: Iterable[Criterion],
) -> List[TeamAggregate]:
    """
    按团队聚合

    aggregated_z 是各评委加权总分的平均值（而非求和）。
    criterion_z 为各标准未加权 z 的平均值，缺失记为0，供并列判定使用。
    """
    criterion_ids = [c.id for c in criteria]
    team_groups: Dict[str, List[NormalizedEvaluation]] = defaultdict(list)
    for item in normalized:
        team_groups[item.team_id].append(item)

    aggregates: List[TeamAggregate] = []
    for team_id in sorted(team_groups):
        team_evals = sorted(team_groups[team_id], key=lambda e: e.judge_id)

        weighted_totals = np.array([e.weighted_total for e in team_evals], dtype=np.float64)
        criterion_z = {
            cid: float(np.mean([e.z_scores.get(cid, 0.0) for e in team_evals]))
            for cid in criterion_ids
        }

        aggregates.append(TeamAggregate(
            team_id=team_id,
            aggregated_z=float(np.mean(weighted_totals)),
            criterion_z=criterion_z,
            raw_totals=[e.raw_total for e in team_evals],
            judge_count=len({e.judge_id for e in team_evals}),
            evaluations=team_evals,
        ))

    return aggregates
