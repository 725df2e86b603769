"""
晋级写入模块
把选出的团队分配到后续轮次，按 (round_id, team_id) upsert，重复调用不会产生重复记录
"""

from typing import Any, Dict, Iterable, List, Optional

from roundjudge.storage.sqlite_storage import SQLiteStorage, StorageError
from roundjudge.utils.logger import get_logger

logger = get_logger(__name__)


def _failure(error: str) -> Dict[str, Any]:
    return {'success': False, 'promoted_count': 0, 'error': error}


def promote_teams(
    storage: SQLiteStorage,
    source_round_id: str,
    target_round_id: str,
    team_ids: Iterable[str],
    mode: Optional[str] = None,
    params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    晋级团队到目标轮次

    目标轮次必须存在，并且与源轮次属于同一赛事、轮次编号更大。

    Returns:
        {'success': bool, 'promoted_count': int, 'error': 原因或None}
    """
    mode_value = getattr(mode, 'value', mode)
    try:
        source = storage.get_round(source_round_id)
        if source is None:
            return _failure('source round not found')
        target = storage.get_round(target_round_id)
        if target is None:
            return _failure('target round not found')
        if target['event_id'] != source['event_id'] or target['round_number'] <= source['round_number']:
            return _failure('target round must follow source round')

        promoted_count = storage.upsert_team_assignments(
            target_round_id,
            list(team_ids),
            source_round_id=source_round_id,
            selection_mode=mode_value,
            selection_params=params or {},
        )
    except StorageError as e:
        logger.error(f"晋级写入失败 ({source_round_id} -> {target_round_id}): {e}")
        return _failure(f"storage failure: {e}")

    logger.info(f"已晋级 {promoted_count} 支团队: {source_round_id} -> {target_round_id}")
    return {'success': True, 'promoted_count': promoted_count, 'error': None}


def get_promoted_teams(storage: SQLiteStorage, round_id: str) -> List[Dict[str, Any]]:
    """读取分配到某轮次的团队"""
    return storage.get_team_assignments(round_id)
