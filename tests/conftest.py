"""
共享测试夹具
"""

import pytest

from roundjudge.infra.scoring import Criterion, Evaluation
from roundjudge.storage import SQLiteStorage

EVENT_ID = 'event-1'
ROUND_ID = 'event-1-round-1'
NEXT_ROUND_ID = 'event-1-round-2'


@pytest.fixture
def criteria():
    """三个评分标准，权重各不相同"""
    return [
        Criterion(id='innovation', weight=50, max_marks=10, display_order=1, name='Innovation'),
        Criterion(id='execution', weight=30, max_marks=10, display_order=2, name='Execution'),
        Criterion(id='pitch', weight=20, max_marks=10, display_order=3, name='Pitch'),
    ]


@pytest.fixture
def single_criterion():
    return [Criterion(id='overall', weight=100, max_marks=10, display_order=1)]


@pytest.fixture
def judge_a_evaluations():
    """评委A给三支团队打 8 / 6 / 4 分"""
    return [
        Evaluation(judge_id='A', team_id='T1', scores={'overall': 8}),
        Evaluation(judge_id='A', team_id='T2', scores={'overall': 6}),
        Evaluation(judge_id='A', team_id='T3', scores={'overall': 4}),
    ]


@pytest.fixture
def storage(tmp_path):
    return SQLiteStorage(str(tmp_path / 'roundjudge.db'))


@pytest.fixture
def seeded_storage(storage, criteria):
    """
    已就绪的轮次：两位评委、四支团队、全部已提交

    评委 J1 偏严，评委 J2 偏松；两人对团队的相对排序一致。
    """
    storage.upsert_round(ROUND_ID, EVENT_ID, 1, status='active')
    storage.upsert_round(NEXT_ROUND_ID, EVENT_ID, 2)
    for criterion in criteria:
        storage.add_criterion(ROUND_ID, criterion)
    storage.assign_judge(ROUND_ID, 'J1', 'HARDWARE')
    storage.assign_judge(ROUND_ID, 'J2', 'SOFTWARE')

    scores = {
        'J1': {
            'T1': {'innovation': 8, 'execution': 7, 'pitch': 6},
            'T2': {'innovation': 6, 'execution': 6, 'pitch': 5},
            'T3': {'innovation': 4, 'execution': 5, 'pitch': 4},
            'T4': {'innovation': 3, 'execution': 2, 'pitch': 3},
        },
        'J2': {
            'T1': {'innovation': 10, 'execution': 9, 'pitch': 9},
            'T2': {'innovation': 9, 'execution': 9, 'pitch': 8},
            'T3': {'innovation': 8, 'execution': 7, 'pitch': 8},
            'T4': {'innovation': 6, 'execution': 6, 'pitch': 7},
        },
    }
    for judge_id, team_scores in scores.items():
        for team_id, values in team_scores.items():
            storage.upsert_team(team_id, EVENT_ID, f"Team {team_id}")
            storage.save_evaluation(ROUND_ID, judge_id, team_id, values, is_draft=False)

    return storage
