"""
Z-score 标准化模块
每个原始分都相对于该评委自身的（汇总）均值和标准差进行标准化
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from roundjudge.utils.logger import get_logger

from .judge_statistics import is_numeric_score
from .types import Criterion, Evaluation, JudgeStatistic, NormalizedEvaluation

logger = get_logger(__name__)

DEFAULT_WEIGHT_SCALE = 100.0


@dataclass
class NormalizationSummary:
    """标准化过程中被排除的数据统计"""
    excluded_entries: int = 0
    skipped_evaluations: int = 0
    excluded_judges: List[str] = field(default_factory=list)


def z_score(raw_score: float, stat: JudgeStatistic) -> float:
    """z = (raw - mean) / std_dev；std_dev 为 0 时 z = 0"""
    if stat.std_dev > 0:
        return (raw_score - stat.mean) / stat.std_dev
    return 0.0


def normalize_evaluation(
    evaluation: Evaluation,
    criteria: List[Criterion],
    stat: JudgeStatistic,
    weight_scale: float = DEFAULT_WEIGHT_SCALE,
) -> NormalizedEvaluation:
    """对单条评审记录逐个标准计算 z 与加权 z（weighted_z = z * weight / weight_scale）"""
    z_scores: Dict[str, float] = {}
    weighted_z_scores: Dict[str, float] = {}
    raw_total = 0.0
    scores = evaluation.scores or {}

    for criterion in criteria:
        value = scores.get(criterion.id)
        if not is_numeric_score(value):
            continue
        z = z_score(float(value), stat)
        z_scores[criterion.id] = z
        weighted_z_scores[criterion.id] = z * (criterion.weight / weight_scale)
        raw_total += float(value)

    return NormalizedEvaluation(
        judge_id=evaluation.judge_id,
        team_id=evaluation.team_id,
        raw_total=raw_total,
        weighted_total=sum(weighted_z_scores.values()),
        judge_mean=stat.mean,
        judge_std=stat.std_dev,
        z_scores=z_scores,
        weighted_z_scores=weighted_z_scores,
    )


def normalize_evaluations(
    evaluations: Iterable[Evaluation],
    criteria: Iterable[Criterion],
    judge_stats: Dict[str, JudgeStatistic],
    weight_scale: float = DEFAULT_WEIGHT_SCALE,
) -> Tuple[List[NormalizedEvaluation], NormalizationSummary]:
    """
    标准化一个轮次的全部已提交评审

    引用了不属于本轮评分标准的条目会被排除并记录警告；
    没有统计量的评委（无任何有效分数）的评审整体跳过。
    """
    criteria = sorted(criteria, key=lambda c: (c.display_order, c.id))
    known_ids = {c.id for c in criteria}
    summary = NormalizationSummary()
    normalized: List[NormalizedEvaluation] = []
    excluded_judges = set()

    for evaluation in evaluations:
        scores = evaluation.scores or {}

        for criterion_id, value in scores.items():
            if criterion_id not in known_ids:
                summary.excluded_entries += 1
                logger.warning(
                    f"评审 (judge={evaluation.judge_id}, team={evaluation.team_id}) "
                    f"引用了本轮不存在的评分标准 {criterion_id}，已排除"
                )
            elif value is not None and not is_numeric_score(value):
                summary.excluded_entries += 1
                logger.warning(
                    f"评审 (judge={evaluation.judge_id}, team={evaluation.team_id}) "
                    f"标准 {criterion_id} 的分数无效: {value!r}，已排除"
                )

        stat = judge_stats.get(evaluation.judge_id)
        if stat is None:
            excluded_judges.add(evaluation.judge_id)
            summary.skipped_evaluations += 1
            continue

        result = normalize_evaluation(evaluation, criteria, stat, weight_scale)
        if not result.z_scores:
            summary.skipped_evaluations += 1
            logger.warning(
                f"评审 (judge={evaluation.judge_id}, team={evaluation.team_id}) 没有可用分数，已跳过"
            )
            continue
        normalized.append(result)

    summary.excluded_judges = sorted(excluded_judges)
    if summary.excluded_judges:
        logger.warning(f"以下评委没有有效分数，不参与标准化: {summary.excluded_judges}")

    return normalized, summary
