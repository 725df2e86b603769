"""
轮次计算模块
就绪检查 -> 评委统计 -> Z-score标准化 -> 加权聚合 -> 排名 -> 原子替换结果
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from roundjudge.infra.locks import RoundLockTimeout, round_compute_lock
from roundjudge.infra.scoring import (
    Criterion,
    Evaluation,
    JudgeStatistic,
    NormalizationSummary,
    TeamRoundResult,
    aggregate_team_scores,
    compute_judge_statistics,
    normalize_evaluations,
    rank_teams,
)
from roundjudge.infra.scoring.normalization import DEFAULT_WEIGHT_SCALE
from roundjudge.infra.scoring.ranking import DEFAULT_TIE_EPSILON
from roundjudge.storage.sqlite_storage import SQLiteStorage, StorageError
from roundjudge.utils.logger import get_logger

from .compute_run import ComputeRun
from .readiness import check_readiness

logger = get_logger(__name__)


@dataclass
class RoundComputation:
    """一次轮次计算的内存结果（尚未写入存储）"""
    results: List[TeamRoundResult]
    judge_stats: Dict[str, JudgeStatistic]
    summary: NormalizationSummary = field(default_factory=NormalizationSummary)

    @property
    def teams_evaluated(self) -> int:
        return len(self.results)

    @property
    def judges_count(self) -> int:
        return len(self.judge_stats)


def compute_round_results(
    evaluations: Iterable[Evaluation],
    criteria: Iterable[Criterion],
    tie_epsilon: float = DEFAULT_TIE_EPSILON,
    weight_scale: float = DEFAULT_WEIGHT_SCALE,
) -> RoundComputation:
    """对一份评审快照执行完整的计算流水线（纯函数，不访问存储）"""
    evaluations = list(evaluations)
    criteria = list(criteria)

    judge_stats = compute_judge_statistics(evaluations, criteria)
    normalized, summary = normalize_evaluations(evaluations, criteria, judge_stats, weight_scale)
    aggregates = aggregate_team_scores(normalized, criteria)
    results = rank_teams(aggregates, criteria, tie_epsilon)

    return RoundComputation(results=results, judge_stats=judge_stats, summary=summary)


def compute_round(
    storage: SQLiteStorage,
    round_id: str,
    computed_by: Optional[str] = None,
    tie_epsilon: float = DEFAULT_TIE_EPSILON,
    weight_scale: float = DEFAULT_WEIGHT_SCALE,
    lock_timeout_s: Optional[float] = None,
) -> Dict[str, Any]:
    """
    计算一个轮次的团队排名并替换已存储的结果

    同一轮次的计算在进程内串行执行；结果、计算日志和轮次状态在同一个事务中写入，
    读取方不会看到空的或写了一半的结果。

    Returns:
        成功: {'success': True, 'stats': {...}, 'error': None}
        失败: {'success': False, 'stats': {...}, 'error': 原因}
    """
    try:
        with round_compute_lock(round_id, timeout_s=lock_timeout_s, reason="compute_round"):
            return _compute_locked(storage, round_id, computed_by, tie_epsilon, weight_scale)
    except RoundLockTimeout as e:
        logger.warning(f"轮次 {round_id} 正在计算中，本次请求放弃: {e}")
        return {
            'success': False,
            'stats': {},
            'error': f"computation already in progress for round {round_id}",
        }


def _compute_locked(
    storage: SQLiteStorage,
    round_id: str,
    computed_by: Optional[str],
    tie_epsilon: float,
    weight_scale: float,
) -> Dict[str, Any]:
    readiness = check_readiness(storage, round_id)
    if not readiness['ready']:
        logger.info(f"轮次 {round_id} 未就绪: {readiness['missing']}")
        return {
            'success': False,
            'stats': readiness['stats'],
            'missing': readiness['missing'],
            'error': f"round not ready: {'; '.join(readiness['missing'])}",
        }

    run = ComputeRun(round_id, computed_by=computed_by)
    logger.info(f"开始计算轮次 {round_id} ({run.run_id})")

    try:
        criteria = storage.get_criteria(round_id)
        evaluations = storage.get_submitted_evaluations(round_id)
    except StorageError as e:
        logger.error(f"轮次 {round_id} 读取评审数据失败: {e}")
        return {'success': False, 'stats': {}, 'error': f"storage failure: {e}"}

    computation = compute_round_results(evaluations, criteria, tie_epsilon, weight_scale)
    if not computation.results:
        logger.warning(f"轮次 {round_id} 没有可计算的评审，保留原有结果")
        return {'success': False, 'stats': {}, 'error': 'no scorable evaluations'}

    stats = {
        'run_id': run.run_id,
        'teams_evaluated': computation.teams_evaluated,
        'judges_count': computation.judges_count,
        'evaluations_used': sum(len(r.breakdown) for r in computation.results),
        'excluded_entries': computation.summary.excluded_entries,
        'skipped_evaluations': computation.summary.skipped_evaluations,
        'excluded_judges': list(computation.summary.excluded_judges),
    }
    run.set_params(tie_epsilon=tie_epsilon, weight_scale=weight_scale)
    run.set_stats(**stats)

    try:
        storage.replace_round_results(round_id, computation.results, run.to_log_record())
    except StorageError as e:
        logger.error(f"轮次 {round_id} 写入结果失败，已回滚: {e}")
        return {'success': False, 'stats': stats, 'error': f"storage failure: {e}"}

    logger.info(
        f"轮次 {round_id} 计算完成: {stats['teams_evaluated']} 支团队, "
        f"{stats['judges_count']} 位评委"
    )
    return {'success': True, 'stats': stats, 'error': None}
