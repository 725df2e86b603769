"""
晋级选择与晋级写入测试
"""

import pytest

from roundjudge.core import advance_round, compute_round, get_promoted_teams, promote_teams, select_teams
from roundjudge.core.selection import should_stop_after_round

EVENT_ID = 'event-1'
ROUND_ID = 'event-1-round-1'
NEXT_ROUND_ID = 'event-1-round-2'


@pytest.fixture
def computed_storage(seeded_storage):
    """已完成计算的轮次"""
    assert compute_round(seeded_storage, ROUND_ID)['success']
    return seeded_storage


def test_select_requires_computed_results(seeded_storage):
    """测试尚未计算的轮次无法选择"""
    result = select_teams(seeded_storage, ROUND_ID, 'GLOBAL_TOP_K', {'k': 2})

    assert result == {'success': False, 'selected': [], 'error': 'results not computed'}


def test_select_global_top_k(computed_storage):
    """测试全局Top-K选择"""
    result = select_teams(computed_storage, ROUND_ID, 'GLOBAL_TOP_K', {'k': 2})

    assert result['success'] is True
    assert result['selected'] == ['T1', 'T2']
    assert result['mode'] == 'GLOBAL_TOP_K'
    assert result['params'] == {'k': 2}
    assert result['stats'] == {'total_teams': 4, 'total_selected': 2}


def test_select_invalid_mode_and_params(computed_storage):
    """测试非法模式与参数"""
    invalid_mode = select_teams(computed_storage, ROUND_ID, 'RANDOM', {'k': 2})
    assert invalid_mode['success'] is False
    assert invalid_mode['error'] == 'invalid selection mode: RANDOM'

    missing_k = select_teams(computed_storage, ROUND_ID, 'GLOBAL_TOP_K', {})
    assert missing_k['success'] is False
    assert "'k'" in missing_k['error']

    negative_n = select_teams(computed_storage, ROUND_ID, 'PER_JUDGE_TOP_N', {'n': -1})
    assert "'n'" in negative_n['error']


def test_select_uses_defaults(computed_storage):
    """测试缺失的参数使用默认值"""
    result = select_teams(computed_storage, ROUND_ID, 'GLOBAL_TOP_K', None, defaults={'k': 3})
    assert result['selected'] == ['T1', 'T2', 'T3']

    overridden = select_teams(computed_storage, ROUND_ID, 'GLOBAL_TOP_K', {'k': 1}, defaults={'k': 3})
    assert overridden['selected'] == ['T1']


def test_select_per_judge_top_n(computed_storage):
    """测试按评委Top-N并返回每位评委的明细"""
    result = select_teams(computed_storage, ROUND_ID, 'PER_JUDGE_TOP_N', {'n': 1})

    assert result['success'] is True
    assert result['selected'] == ['T1']
    assert [b['judge_id'] for b in result['breakdown']] == ['J1', 'J2']
    assert all(b['teams_evaluated'] == 4 for b in result['breakdown'])


def test_select_per_judge_filters_judge_types(computed_storage):
    """测试 judge_types 只保留指定类型评委的提名"""
    result = select_teams(computed_storage, ROUND_ID, 'PER_JUDGE_TOP_N', {'n': 2, 'judge_types': ['SOFTWARE']})

    assert [b['judge_id'] for b in result['breakdown']] == ['J2']
    assert result['selected'] == ['T1', 'T2']


def test_promote_is_idempotent(computed_storage):
    """测试重复晋级不产生重复记录"""
    first = promote_teams(computed_storage, ROUND_ID, NEXT_ROUND_ID, ['T1', 'T2'], 'GLOBAL_TOP_K', {'k': 2})
    second = promote_teams(computed_storage, ROUND_ID, NEXT_ROUND_ID, ['T1', 'T2', 'T2'], 'GLOBAL_TOP_K', {'k': 2})

    assert first == {'success': True, 'promoted_count': 2, 'error': None}
    assert second['promoted_count'] == 2

    promoted = get_promoted_teams(computed_storage, NEXT_ROUND_ID)
    assert [p['team_id'] for p in promoted] == ['T1', 'T2']
    assert promoted[0]['selection_mode'] == 'GLOBAL_TOP_K'
    assert promoted[0]['selection_params'] == {'k': 2}


def test_promote_invalid_target(computed_storage):
    """测试目标轮次不存在或不在源轮次之后"""
    missing = promote_teams(computed_storage, ROUND_ID, 'nowhere', ['T1'])
    assert missing == {'success': False, 'promoted_count': 0, 'error': 'target round not found'}

    backwards = promote_teams(computed_storage, NEXT_ROUND_ID, ROUND_ID, ['T1'])
    assert backwards['error'] == 'target round must follow source round'

    computed_storage.upsert_round('other-event-r2', 'event-2', 2)
    other_event = promote_teams(computed_storage, ROUND_ID, 'other-event-r2', ['T1'])
    assert other_event['error'] == 'target round must follow source round'

    missing_source = promote_teams(computed_storage, 'ghost', NEXT_ROUND_ID, ['T1'])
    assert missing_source['error'] == 'source round not found'

    assert get_promoted_teams(computed_storage, ROUND_ID) == []


def test_promote_empty_selection(computed_storage):
    """测试空列表晋级成功且数量为0"""
    result = promote_teams(computed_storage, ROUND_ID, NEXT_ROUND_ID, [])
    assert result == {'success': True, 'promoted_count': 0, 'error': None}


def test_advance_round_to_existing_next_round(computed_storage):
    """测试自动晋级到已存在的下一轮"""
    result = advance_round(computed_storage, ROUND_ID, 'GLOBAL_TOP_K', {'k': 3}, create_next_round=True)

    assert result['success'] is True
    assert result['target_round_id'] == NEXT_ROUND_ID
    assert result['promoted_count'] == 3
    assert [p['team_id'] for p in get_promoted_teams(computed_storage, NEXT_ROUND_ID)] == ['T1', 'T2', 'T3']


def test_advance_round_creates_next_round(storage, criteria):
    """测试下一轮不存在时自动创建"""
    storage.upsert_round('r1', 'solo-event', 1)
    storage.add_criterion('r1', criteria[0])
    storage.assign_judge('r1', 'J1')
    storage.assign_judge('r1', 'J2')
    for judge_id, offset in (('J1', 0), ('J2', 2)):
        for team_id, value in (('A', 8), ('B', 5), ('C', 2)):
            storage.save_evaluation('r1', judge_id, team_id, {'innovation': min(value + offset, 10)})
    assert compute_round(storage, 'r1')['success']

    result = advance_round(storage, 'r1', 'GLOBAL_TOP_K', {'k': 2}, create_next_round=True)

    assert result['success'] is True
    next_round = storage.find_round('solo-event', 2)
    assert next_round is not None
    assert next_round['name'] == 'Round 2'
    assert result['target_round_id'] == next_round['id']
    assert result['selected'] == ['A', 'B']


def test_advance_round_without_target(computed_storage):
    """测试没有目标轮次时只返回选择结果"""
    result = advance_round(computed_storage, ROUND_ID, 'GLOBAL_TOP_K', {'k': 1})

    assert result['success'] is True
    assert result['selected'] == ['T1']
    assert result['target_round_id'] is None
    assert result['promoted_count'] == 0


def test_advance_round_no_teams_selected(computed_storage):
    result = advance_round(computed_storage, ROUND_ID, 'GLOBAL_TOP_K', {'k': 0}, target_round_id=NEXT_ROUND_ID)

    assert result['success'] is False
    assert result['error'] == 'No teams selected'
    assert get_promoted_teams(computed_storage, NEXT_ROUND_ID) == []


def test_single_judge_round_stops(storage):
    """测试只有一位评委的轮次不再晋级"""
    storage.upsert_round('final', EVENT_ID, 3)
    storage.assign_judge('final', 'J1')

    assert should_stop_after_round(storage, 'final') is True
    result = advance_round(storage, 'final', 'GLOBAL_TOP_K', {'k': 1})
    assert result['success'] is True
    assert result['stop'] is True
