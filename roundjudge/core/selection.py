"""
晋级选择模块
基于已存储的轮次结果执行选择策略，并编排"选择 -> 创建下一轮 -> 晋级写入"的流程
"""

from typing import Any, Dict, Optional

from roundjudge.infra.scoring import (
    SelectionResult,
    flatten_breakdown,
    get_selection_policy,
)
from roundjudge.storage.sqlite_storage import SQLiteStorage, StorageError
from roundjudge.utils.logger import get_logger

from .promotion import promote_teams

logger = get_logger(__name__)


def _failure(error: str) -> Dict[str, Any]:
    return {'success': False, 'selected': [], 'error': error}


def select_teams(
    storage: SQLiteStorage,
    round_id: str,
    mode: str,
    params: Optional[Dict[str, Any]] = None,
    defaults: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    按选择策略从已计算的轮次结果中选出晋级团队（不写入存储）

    Args:
        storage: 存储实例
        round_id: 已计算的轮次ID
        mode: GLOBAL_TOP_K 或 PER_JUDGE_TOP_N
        params: 策略参数，k / n，按评委模式可带 judge_types
        defaults: params 中缺失的参数从这里补齐（通常来自配置文件）

    Returns:
        成功: {'success': True, 'selected': [...], 'mode', 'params', 'stats', 'error': None}
        失败: {'success': False, 'selected': [], 'error': 原因}
    """
    try:
        policy = get_selection_policy(mode)
    except ValueError as e:
        return _failure(str(e))

    merged = dict(defaults or {})
    merged.update(params or {})
    try:
        validated = policy.validate_params(merged)
    except ValueError as e:
        return _failure(str(e))

    try:
        results = storage.get_round_results(round_id)
        if not results:
            return _failure('results not computed')

        evaluations = flatten_breakdown(results)
        judge_types = validated.get('judge_types')
        if judge_types is not None:
            allowed = {
                a['judge_id']
                for a in storage.get_judge_assignments(round_id)
                if a['judge_type'] in judge_types
            }
            evaluations = [e for e in evaluations if e.judge_id in allowed]
    except StorageError as e:
        logger.error(f"轮次 {round_id} 读取结果失败: {e}")
        return _failure(f"storage failure: {e}")

    selected, details = policy.select_with_details(results, evaluations, validated)
    selection = SelectionResult(
        selected_team_ids=selected,
        mode=policy.mode.value,
        parameters=validated,
        details=details,
    )

    logger.info(
        f"轮次 {round_id} 选择完成 ({selection.mode}): "
        f"{len(selection.selected_team_ids)}/{len(results)} 支团队入选"
    )
    response = {
        'success': True,
        'selected': selection.selected_team_ids,
        'mode': selection.mode,
        'params': selection.parameters,
        'stats': {
            'total_teams': len(results),
            'total_selected': len(selection.selected_team_ids),
        },
        'error': None,
    }
    if 'breakdown' in selection.details:
        response['breakdown'] = selection.details['breakdown']
    return response


def should_stop_after_round(storage: SQLiteStorage, round_id: str) -> bool:
    """只分配了一位评委的轮次不再需要后续轮次"""
    return len(storage.get_judge_assignments(round_id)) == 1


def _next_round_id(event_id: str, round_number: int) -> str:
    return f"{event_id}-round-{round_number}"


def advance_round(
    storage: SQLiteStorage,
    round_id: str,
    mode: str,
    params: Optional[Dict[str, Any]] = None,
    target_round_id: Optional[str] = None,
    create_next_round: bool = False,
    defaults: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    执行一轮的晋级：停止判断 -> 选择 -> （可选）创建下一轮 -> 晋级写入

    Returns:
        {'success', 'selected', 'target_round_id', 'promoted_count', 'stats', 'error'}
        单评委轮次返回 {'success': True, 'stop': True, 'message': ...}
    """
    try:
        if should_stop_after_round(storage, round_id):
            logger.info(f"轮次 {round_id} 仅有一位评委，不再晋级")
            return {
                'success': True,
                'stop': True,
                'message': 'Single judge assigned, no further rounds needed',
            }
    except StorageError as e:
        logger.error(f"轮次 {round_id} 读取评委分配失败: {e}")
        return _failure(f"storage failure: {e}")

    selection = select_teams(storage, round_id, mode, params, defaults=defaults)
    if not selection['success']:
        return selection
    if not selection['selected']:
        return _failure('No teams selected')

    if target_round_id is None and create_next_round:
        try:
            current = storage.get_round(round_id)
            if current is None:
                return _failure('source round not found')
            next_number = current['round_number'] + 1
            existing = storage.find_round(current['event_id'], next_number)
            if existing is not None:
                target_round_id = existing['id']
            else:
                target_round_id = _next_round_id(current['event_id'], next_number)
                storage.upsert_round(
                    target_round_id,
                    current['event_id'],
                    next_number,
                    name=f"Round {next_number}",
                    status='draft',
                )
                logger.info(f"已创建下一轮次 {target_round_id}")
        except StorageError as e:
            logger.error(f"创建下一轮次失败: {e}")
            return _failure(f"storage failure: {e}")

    promoted_count = 0
    if target_round_id is not None:
        promotion = promote_teams(
            storage,
            round_id,
            target_round_id,
            selection['selected'],
            mode=selection['mode'],
            params=selection['params'],
        )
        if not promotion['success']:
            return {
                'success': False,
                'selected': selection['selected'],
                'error': promotion['error'],
            }
        promoted_count = promotion['promoted_count']

    return {
        'success': True,
        'selected': selection['selected'],
        'target_round_id': target_round_id,
        'promoted_count': promoted_count,
        'stats': selection['stats'],
        'error': None,
    }
