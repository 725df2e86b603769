"""
晋级选择策略模块
提供全局Top-K、按评委Top-N两种策略
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple, Union

from .types import JudgeBreakdown, TeamRoundResult


class SelectionMode(str, Enum):
    GLOBAL_TOP_K = 'GLOBAL_TOP_K'
    PER_JUDGE_TOP_N = 'PER_JUDGE_TOP_N'


def _require_count(params: Dict[str, Any], key: str) -> int:
    value = params.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"parameter '{key}' must be a non-negative integer, got {value!r}")
    return value


def flatten_breakdown(results: Iterable[TeamRoundResult]) -> List[JudgeBreakdown]:
    """把团队结果中的评委明细展开成逐条评审"""
    return [entry for result in results for entry in result.breakdown]


class SelectionPolicy(ABC):
    """晋级选择策略基类: 定义选择接口"""

    mode: SelectionMode

    @abstractmethod
    def validate_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """校验并返回规范化后的参数，不合法时抛出 ValueError"""
        pass

    @abstractmethod
    def select(
        self,
        results: List[TeamRoundResult],
        evaluations: List[JudgeBreakdown],
        params: Dict[str, Any],
    ) -> List[str]:
        """选出晋级团队ID"""
        pass

    def select_with_details(
        self,
        results: List[TeamRoundResult],
        evaluations: List[JudgeBreakdown],
        params: Dict[str, Any],
    ) -> Tuple[List[str], Dict[str, Any]]:
        """选出晋级团队，并附带策略相关的明细"""
        return self.select(results, evaluations, params), {}


class GlobalTopKPolicy(SelectionPolicy):
    """全局Top-K: 按名次选出前K支团队，边界上的并列团队整体入选（可能超过K）"""

    mode = SelectionMode.GLOBAL_TOP_K

    def validate_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {'k': _require_count(params, 'k')}

    def select(
        self,
        results: List[TeamRoundResult],
        evaluations: List[JudgeBreakdown],
        params: Dict[str, Any],
    ) -> List[str]:
        k = _require_count(params, 'k')
        ordered = sorted(results, key=lambda r: (r.rank, r.team_id))

        if k == 0:
            return []
        if k >= len(ordered):
            return [r.team_id for r in ordered]

        boundary_rank = ordered[k - 1].rank
        return [r.team_id for r in ordered if r.rank <= boundary_rank]


class PerJudgeTopNPolicy(SelectionPolicy):
    """按评委Top-N: 每位评委按自己的加权总分提名前N支团队，结果取并集"""

    mode = SelectionMode.PER_JUDGE_TOP_N

    def validate_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        validated = {'n': _require_count(params, 'n')}
        if params.get('judge_types') is not None:
            validated['judge_types'] = list(params['judge_types'])
        return validated

    def nominate(self, evaluations: Iterable[JudgeBreakdown], n: int) -> Dict[str, List[str]]:
        """每位评委的提名列表：加权总分降序，其次原始总分降序，最后按 team_id"""
        by_judge: Dict[str, List[JudgeBreakdown]] = {}
        for entry in evaluations:
            by_judge.setdefault(entry.judge_id, []).append(entry)

        nominations: Dict[str, List[str]] = {}
        for judge_id in sorted(by_judge):
            ordered = sorted(
                by_judge[judge_id],
                key=lambda e: (-e.weighted_z, -e.raw_total, e.team_id),
            )
            nominees: List[str] = []
            for entry in ordered:
                if len(nominees) >= n:
                    break
                if entry.team_id not in nominees:
                    nominees.append(entry.team_id)
            nominations[judge_id] = nominees
        return nominations

    def select(
        self,
        results: List[TeamRoundResult],
        evaluations: List[JudgeBreakdown],
        params: Dict[str, Any],
    ) -> List[str]:
        selected, _ = self.select_with_details(results, evaluations, params)
        return selected

    def select_with_details(
        self,
        results: List[TeamRoundResult],
        evaluations: List[JudgeBreakdown],
        params: Dict[str, Any],
    ) -> Tuple[List[str], Dict[str, Any]]:
        n = _require_count(params, 'n')
        nominations = self.nominate(evaluations, n)

        evaluated_counts: Dict[str, int] = {}
        for entry in evaluations:
            evaluated_counts[entry.judge_id] = evaluated_counts.get(entry.judge_id, 0) + 1

        selected: List[str] = []
        seen = set()
        breakdown = []
        for judge_id, nominees in nominations.items():
            for team_id in nominees:
                if team_id not in seen:
                    seen.add(team_id)
                    selected.append(team_id)
            breakdown.append({
                'judge_id': judge_id,
                'teams_evaluated': evaluated_counts.get(judge_id, 0),
                'teams_selected': len(nominees),
                'selected_team_ids': list(nominees),
            })

        return selected, {'breakdown': breakdown}


SELECTION_POLICIES = {
    SelectionMode.GLOBAL_TOP_K: GlobalTopKPolicy,
    SelectionMode.PER_JUDGE_TOP_N: PerJudgeTopNPolicy,
}


def get_selection_policy(mode: Union[str, SelectionMode]) -> SelectionPolicy:
    """根据模式创建选择策略，未知模式抛出 ValueError"""
    try:
        selection_mode = SelectionMode(mode)
    except ValueError:
        raise ValueError(f"invalid selection mode: {mode}")
    return SELECTION_POLICIES[selection_mode]()
