"""
轮次就绪检查
计算前确认轮次存在、已定义评分标准、已分配评委且至少有一条已提交评审
"""

from typing import Any, Dict

from roundjudge.storage.sqlite_storage import SQLiteStorage, StorageError
from roundjudge.utils.logger import get_logger

logger = get_logger(__name__)


def check_readiness(storage: SQLiteStorage, round_id: str) -> Dict[str, Any]:
    """
    检查轮次是否可以计算，无副作用

    Returns:
        {'ready': bool, 'stats': {...}, 'missing': [原因]}
    """
    stats = {
        'criteria_count': 0,
        'judges_count': 0,
        'submitted_count': 0,
        'draft_count': 0,
    }
    missing = []

    try:
        if storage.get_round(round_id) is None:
            return {'ready': False, 'stats': stats, 'missing': ['Round not found']}

        counts = storage.count_evaluations(round_id)
        stats['criteria_count'] = len(storage.get_criteria(round_id))
        stats['judges_count'] = len(storage.get_judge_assignments(round_id))
        stats['submitted_count'] = counts['submitted']
        stats['draft_count'] = counts['draft']
    except StorageError as e:
        logger.error(f"轮次 {round_id} 就绪检查读取失败: {e}")
        return {'ready': False, 'stats': stats, 'missing': [f"storage failure: {e}"]}

    if stats['criteria_count'] == 0:
        missing.append('No criteria defined')
    if stats['judges_count'] == 0:
        missing.append('No judges assigned')
    if stats['submitted_count'] == 0:
        missing.append('No submitted evaluations')

    return {'ready': not missing, 'stats': stats, 'missing': missing}
