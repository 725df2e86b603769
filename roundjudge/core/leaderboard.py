"""
排行榜生成模块
把轮次的已存储结果整理成 DataFrame，用于展示和审计
"""

from typing import Dict, Iterable, List, Optional

import pandas as pd

from roundjudge.infra.scoring import TeamRoundResult
from roundjudge.storage.sqlite_storage import SQLiteStorage

LEADERBOARD_COLUMNS = [
    'rank',
    'team_id',
    'team_name',
    'aggregated_z',
    'percentile',
    'judge_count',
    'mean_raw_total',
    'is_tied',
]

BREAKDOWN_COLUMNS = [
    'team_id',
    'judge_id',
    'raw_total',
    'weighted_z',
    'judge_mean',
    'judge_std',
]


def get_round_results(storage: SQLiteStorage, round_id: str) -> List[TeamRoundResult]:
    """读取轮次的已存储结果（按名次排序）"""
    return storage.get_round_results(round_id)


def build_leaderboard(
    results: Iterable[TeamRoundResult],
    team_names: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """生成排行榜，team_names 缺失的团队以 team_id 显示"""
    team_names = team_names or {}
    rows = [
        {
            'rank': r.rank,
            'team_id': r.team_id,
            'team_name': team_names.get(r.team_id, r.team_id),
            'aggregated_z': round(r.aggregated_z, 4),
            'percentile': round(r.percentile, 2),
            'judge_count': r.judge_count,
            'mean_raw_total': round(r.mean_raw_total, 2),
            'is_tied': r.is_tied,
        }
        for r in results
    ]
    if not rows:
        return pd.DataFrame(columns=LEADERBOARD_COLUMNS)

    df = pd.DataFrame(rows, columns=LEADERBOARD_COLUMNS)
    return df.sort_values(['rank', 'team_id'], kind='mergesort').reset_index(drop=True)


def build_judge_breakdown(results: Iterable[TeamRoundResult]) -> pd.DataFrame:
    """每支团队、每位评委一行的明细"""
    rows = [
        {
            'team_id': r.team_id,
            'judge_id': entry.judge_id,
            'raw_total': entry.raw_total,
            'weighted_z': entry.weighted_z,
            'judge_mean': entry.judge_mean,
            'judge_std': entry.judge_std,
        }
        for r in results
        for entry in r.breakdown
    ]
    if not rows:
        return pd.DataFrame(columns=BREAKDOWN_COLUMNS)
    return pd.DataFrame(rows, columns=BREAKDOWN_COLUMNS)
