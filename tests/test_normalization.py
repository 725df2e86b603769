"""
Z-score标准化与加权聚合单元测试
"""

import math

import pytest

from roundjudge.infra.scoring import (
    Criterion,
    Evaluation,
    JudgeStatistic,
    aggregate_team_scores,
    compute_judge_statistics,
    normalize_evaluations,
    z_score,
)


def _normalize(evaluations, criteria, weight_scale=100.0):
    stats = compute_judge_statistics(evaluations, criteria)
    return normalize_evaluations(evaluations, criteria, stats, weight_scale)


def test_z_score_zero_std():
    """测试标准差为0时 z 为0"""
    stat = JudgeStatistic(judge_id='B', mean=7.0, std_dev=0.0, count=1)
    assert z_score(7.0, stat) == 0.0
    assert z_score(3.0, stat) == 0.0


def test_judge_a_scenario(judge_a_evaluations, single_criterion):
    """测试评委A打 8/6/4 分时的标准化结果"""
    normalized, summary = _normalize(judge_a_evaluations, single_criterion)
    by_team = {n.team_id: n for n in normalized}

    assert by_team['T1'].z_scores['overall'] == pytest.approx(1.2247, abs=1e-4)
    assert by_team['T2'].z_scores['overall'] == pytest.approx(0.0, abs=1e-12)
    assert by_team['T3'].z_scores['overall'] == pytest.approx(-1.2247, abs=1e-4)
    assert summary.excluded_entries == 0

    aggregates = aggregate_team_scores(normalized, single_criterion)
    ordered = sorted(aggregates, key=lambda a: -a.aggregated_z)
    assert [a.team_id for a in ordered] == ['T1', 'T2', 'T3']


def test_judge_b_single_score(single_criterion):
    """测试只给出一个分数的评委，z 为0"""
    normalized, _ = _normalize([Evaluation('B', 'T1', {'overall': 9})], single_criterion)

    assert len(normalized) == 1
    assert normalized[0].z_scores['overall'] == 0.0
    assert normalized[0].weighted_total == 0.0
    assert normalized[0].judge_std == 0.0


def test_weighted_z_uses_weight_scale():
    """测试 weighted_z = z * weight / weight_scale"""
    criteria = [
        Criterion(id='a', weight=60, max_marks=10),
        Criterion(id='b', weight=40, max_marks=10),
    ]
    evaluations = [
        Evaluation('J', 'T1', {'a': 10, 'b': 0}),
        Evaluation('J', 'T2', {'a': 0, 'b': 10}),
    ]
    normalized, _ = _normalize(evaluations, criteria)
    by_team = {n.team_id: n for n in normalized}

    # mean 5, std 5
    assert by_team['T1'].z_scores == {'a': 1.0, 'b': -1.0}
    assert by_team['T1'].weighted_z_scores['a'] == pytest.approx(0.6)
    assert by_team['T1'].weighted_total == pytest.approx(0.2)
    assert by_team['T2'].weighted_total == pytest.approx(-0.2)

    rescaled, _ = _normalize(evaluations, criteria, weight_scale=10.0)
    assert {n.team_id: n for n in rescaled}['T1'].weighted_total == pytest.approx(2.0)


def test_unknown_criterion_excluded(single_criterion):
    """测试引用未知评分标准的条目被排除，不影响本轮计算"""
    evaluations = [
        Evaluation('A', 'T1', {'overall': 8, 'retired': 3}),
        Evaluation('A', 'T2', {'overall': 4}),
    ]
    normalized, summary = _normalize(evaluations, single_criterion)

    assert summary.excluded_entries == 1
    assert len(normalized) == 2
    assert all(set(n.z_scores) == {'overall'} for n in normalized)
    assert {n.team_id: n for n in normalized}['T1'].raw_total == 8.0


def test_invalid_values_excluded(single_criterion):
    """测试非数值分数被排除并计数"""
    evaluations = [
        Evaluation('A', 'T1', {'overall': 'nine'}),
        Evaluation('A', 'T2', {'overall': 4}),
    ]
    normalized, summary = _normalize(evaluations, single_criterion)

    assert summary.excluded_entries == 1
    assert summary.skipped_evaluations == 1
    assert [n.team_id for n in normalized] == ['T2']


def test_judge_without_stats_skipped(single_criterion):
    """测试没有统计量的评委的评审被跳过"""
    evaluations = [Evaluation('A', 'T1', {'overall': 5})]
    normalized, summary = normalize_evaluations(evaluations, single_criterion, {}, 100.0)

    assert normalized == []
    assert summary.excluded_judges == ['A']
    assert summary.skipped_evaluations == 1


def test_aggregated_z_is_mean_over_judges(single_criterion):
    """测试 aggregated_z 是各评委加权总分的平均值"""
    evaluations = [
        Evaluation('A', 'T1', {'overall': 8}),
        Evaluation('A', 'T2', {'overall': 4}),
        Evaluation('B', 'T1', {'overall': 10}),
        Evaluation('B', 'T2', {'overall': 10}),
    ]
    normalized, _ = _normalize(evaluations, single_criterion)
    aggregates = {a.team_id: a for a in aggregate_team_scores(normalized, single_criterion)}

    # A: z = +1 / -1；B: std 为 0，z = 0
    assert aggregates['T1'].aggregated_z == pytest.approx(0.5)
    assert aggregates['T2'].aggregated_z == pytest.approx(-0.5)
    assert aggregates['T1'].judge_count == 2
    assert aggregates['T1'].raw_totals == [8.0, 10.0]
    assert aggregates['T1'].mean_raw_total == 9.0


def test_all_z_finite(criteria):
    """测试任意合法输入下 z 都是有限值"""
    evaluations = [
        Evaluation('J', f'T{i}', {'innovation': i % 11, 'execution': 10, 'pitch': (i * 7) % 11})
        for i in range(20)
    ]
    normalized, _ = _normalize(evaluations, criteria)

    for item in normalized:
        assert all(math.isfinite(z) for z in item.z_scores.values())
        assert math.isfinite(item.weighted_total)
        assert item.judge_std >= 0
