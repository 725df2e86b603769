"""
原始评分校验模块
评委只能提交原始分；提交时检查范围、缺失项以及不允许出现的预计算字段
"""

from typing import Any, Dict, Iterable, List

from roundjudge.infra.scoring import Criterion, is_numeric_score
from roundjudge.storage.sqlite_storage import SQLiteStorage, StorageError
from roundjudge.utils.logger import get_logger

logger = get_logger(__name__)

FORBIDDEN_FIELDS = (
    'z_score',
    'normalized',
    'weighted',
    'final',
    'rank',
    'percentile',
    'aggregated',
    'mean',
    'std',
    'variance',
    'computed',
)


def contains_computed_fields(scores: Dict[str, Any], allowed_keys: Iterable[str] = ()) -> List[str]:
    """
    返回看起来是预计算结果的键（大小写不敏感的子串匹配）

    allowed_keys 中的键（通常是本轮评分标准的 id）不参与匹配，
    例如名为 final_demo 的评分标准不会被误判。
    """
    allowed = set(allowed_keys)
    flagged = []
    for key in scores:
        if key in allowed:
            continue
        lowered = str(key).lower()
        if any(field in lowered for field in FORBIDDEN_FIELDS):
            flagged.append(key)
    return flagged


def validate_raw_scores(
    scores: Dict[str, Any],
    criteria: Iterable[Criterion],
    is_draft: bool = False,
) -> List[str]:
    """
    校验一份原始评分

    草稿允许缺项；已提交的评审每个评分标准都必须有分数。
    分数必须是有限数值，并落在 [min_marks, max_marks] 区间内。

    Returns:
        错误信息列表，空列表表示通过
    """
    if not isinstance(scores, dict):
        return ['Scores must be an object mapping criterion id to raw score']

    criteria = list(criteria)
    errors = [
        f"Field '{key}' is not allowed: only raw scores may be submitted"
        for key in contains_computed_fields(scores, allowed_keys={c.id for c in criteria})
    ]

    for criterion in criteria:
        value = scores.get(criterion.id)
        label = criterion.name or criterion.id
        if value is None:
            if not is_draft:
                errors.append(f"Score for {label} is required")
            continue
        if not is_numeric_score(value):
            errors.append(f"Score for {label} must be a number")
            continue
        if value < criterion.min_marks or value > criterion.max_marks:
            errors.append(
                f"Score for {label} must be between {criterion.min_marks:g} and {criterion.max_marks:g}"
            )

    return errors


def submit_evaluation(
    storage: SQLiteStorage,
    round_id: str,
    judge_id: str,
    team_id: str,
    scores: Dict[str, Any],
    is_draft: bool = False,
) -> Dict[str, Any]:
    """校验并保存一条评审（同一评委对同一团队重复提交时覆盖）"""
    try:
        criteria = storage.get_criteria(round_id)
        errors = validate_raw_scores(scores, criteria, is_draft=is_draft)
        if errors:
            logger.warning(f"评委 {judge_id} 对团队 {team_id} 的评分未通过校验: {errors}")
            return {'success': False, 'error': 'Validation failed', 'details': errors}

        evaluation_id = storage.save_evaluation(round_id, judge_id, team_id, scores, is_draft=is_draft)
    except StorageError as e:
        logger.error(f"保存评审失败 (round={round_id}, judge={judge_id}, team={team_id}): {e}")
        return {'success': False, 'error': f"storage failure: {e}"}

    return {'success': True, 'evaluation_id': evaluation_id, 'error': None}
