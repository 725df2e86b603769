"""
原始评分校验测试
"""

from roundjudge.core import submit_evaluation
from roundjudge.core.validation import contains_computed_fields, validate_raw_scores
from roundjudge.infra.scoring import Criterion


def test_valid_scores(criteria):
    """测试合法评分"""
    assert validate_raw_scores({'innovation': 7, 'execution': 0, 'pitch': 10}, criteria) == []


def test_out_of_range(criteria):
    """测试超出 [min_marks, max_marks] 的分数"""
    errors = validate_raw_scores({'innovation': 11, 'execution': -1, 'pitch': 5}, criteria)

    assert errors == [
        'Score for Innovation must be between 0 and 10',
        'Score for Execution must be between 0 and 10',
    ]


def test_missing_scores_only_for_submitted(criteria):
    """测试已提交评审必须填写全部标准，草稿允许缺项"""
    partial = {'innovation': 5}

    assert validate_raw_scores(partial, criteria, is_draft=True) == []
    assert validate_raw_scores(partial, criteria) == [
        'Score for Execution is required',
        'Score for Pitch is required',
    ]


def test_non_numeric(criteria):
    errors = validate_raw_scores({'innovation': '5', 'execution': True, 'pitch': 5}, criteria)
    assert errors == ['Score for Innovation must be a number', 'Score for Execution must be a number']


def test_computed_fields_rejected(criteria):
    """测试拒绝预计算字段"""
    scores = {'innovation': 5, 'execution': 5, 'pitch': 5, 'Z_Score': 1.2, 'finalRank': 1}

    assert contains_computed_fields(scores) == ['Z_Score', 'finalRank']
    errors = validate_raw_scores(scores, criteria)
    assert len(errors) == 2
    assert all('only raw scores may be submitted' in e for e in errors)


def test_criterion_ids_never_flagged():
    """测试本轮评分标准的 id 即使包含敏感词也按原始分处理"""
    criteria = [
        Criterion(id='final_demo', weight=40, max_marks=10, display_order=1),
        Criterion(id='meaningfulness', weight=30, max_marks=10, display_order=2),
        Criterion(id='ranking_quality', weight=30, max_marks=10, display_order=3),
    ]
    scores = {'final_demo': 8, 'meaningfulness': 6, 'ranking_quality': 7}

    assert contains_computed_fields(scores) == ['final_demo', 'meaningfulness', 'ranking_quality']
    assert contains_computed_fields(scores, allowed_keys=['final_demo', 'meaningfulness', 'ranking_quality']) == []
    assert validate_raw_scores(scores, criteria) == []

    # 非本轮标准的预计算字段仍然被拒绝
    errors = validate_raw_scores(dict(scores, final_rank=1), iter(criteria))
    assert errors == ["Field 'final_rank' is not allowed: only raw scores may be submitted"]


def test_submit_with_keyword_criterion_id(storage):
    """测试标准 id 含敏感词时评审可以正常提交"""
    storage.upsert_round('r1', 'event-x', 1)
    storage.add_criterion('r1', Criterion(id='final_demo', weight=100, max_marks=10, display_order=1))

    result = submit_evaluation(storage, 'r1', 'J1', 'A', {'final_demo': 9})

    assert result['success'] is True
    assert result['error'] is None


def test_submit_evaluation(seeded_storage):
    """测试提交评审：校验失败不写入，校验通过后覆盖保存"""
    round_id = 'event-1-round-1'
    rejected = submit_evaluation(seeded_storage, round_id, 'J1', 'T1', {'innovation': 42})

    assert rejected['success'] is False
    assert rejected['error'] == 'Validation failed'
    assert rejected['details']

    accepted = submit_evaluation(seeded_storage, round_id, 'J1', 'T1', {'innovation': 9, 'execution': 9, 'pitch': 9})
    assert accepted['success'] is True
    assert isinstance(accepted['evaluation_id'], int)

    scores = {e.team_id: e.scores for e in seeded_storage.get_submitted_evaluations(round_id) if e.judge_id == 'J1'}
    assert scores['T1'] == {'innovation': 9, 'execution': 9, 'pitch': 9}


def test_submit_draft(seeded_storage):
    """测试草稿不计入已提交评审"""
    round_id = 'event-1-round-1'
    result = submit_evaluation(seeded_storage, round_id, 'J3', 'T1', {'pitch': 4}, is_draft=True)

    assert result['success'] is True
    assert seeded_storage.count_evaluations(round_id) == {'submitted': 8, 'draft': 1}
