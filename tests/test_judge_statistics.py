"""
评委统计量单元测试
"""

import math

import pytest

from roundjudge.infra.scoring import Evaluation, compute_judge_statistics, is_numeric_score


def test_pooled_mean_and_population_std(judge_a_evaluations, single_criterion):
    """测试跨团队汇总的均值与总体标准差"""
    stats = compute_judge_statistics(judge_a_evaluations, single_criterion)

    assert set(stats) == {'A'}
    assert stats['A'].mean == pytest.approx(6.0)
    assert stats['A'].std_dev == pytest.approx(math.sqrt(8 / 3))
    assert stats['A'].count == 3


def test_pools_across_criteria(criteria):
    """测试同一评委跨标准汇总"""
    evaluations = [
        Evaluation('J', 'T1', {'innovation': 2, 'execution': 4}),
        Evaluation('J', 'T2', {'pitch': 6}),
    ]
    stats = compute_judge_statistics(evaluations, criteria)

    assert stats['J'].count == 3
    assert stats['J'].mean == pytest.approx(4.0)


def test_single_value_has_zero_std(single_criterion):
    """测试只有一个分数的评委 std_dev 为 0 且被保留"""
    stats = compute_judge_statistics([Evaluation('B', 'T1', {'overall': 7})], single_criterion)

    assert stats['B'].std_dev == 0.0
    assert stats['B'].mean == 7.0


def test_identical_values_have_zero_std(single_criterion):
    """测试全部分数相同 std_dev 精确为 0"""
    evaluations = [Evaluation('C', f'T{i}', {'overall': 0.1}) for i in range(5)]
    stats = compute_judge_statistics(evaluations, single_criterion)

    assert stats['C'].std_dev == 0.0


def test_judge_without_scores_is_excluded(single_criterion):
    """测试没有有效分数的评委不出现在结果中"""
    evaluations = [
        Evaluation('A', 'T1', {'overall': 5}),
        Evaluation('D', 'T1', {'overall': None}),
        Evaluation('E', 'T1', {}),
    ]
    stats = compute_judge_statistics(evaluations, single_criterion)

    assert set(stats) == {'A'}


def test_unknown_criteria_not_pooled(single_criterion):
    """测试不属于本轮的评分标准不参与汇总"""
    evaluations = [Evaluation('A', 'T1', {'overall': 5, 'legacy': 100})]
    stats = compute_judge_statistics(evaluations, single_criterion)

    assert stats['A'].count == 1
    assert stats['A'].mean == 5.0


def test_is_numeric_score():
    """测试数值判定"""
    assert is_numeric_score(3)
    assert is_numeric_score(2.5)
    assert not is_numeric_score(True)
    assert not is_numeric_score('7')
    assert not is_numeric_score(None)
    assert not is_numeric_score(float('nan'))
    assert not is_numeric_score(float('inf'))
