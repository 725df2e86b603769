"""
核心业务流程
就绪检查、轮次计算、晋级选择、晋级写入
"""

from .readiness import check_readiness
from .compute_round import compute_round
from .selection import select_teams, advance_round
from .promotion import promote_teams, get_promoted_teams
from .validation import submit_evaluation
from .leaderboard import get_round_results

__all__ = [
    'check_readiness',
    'compute_round',
    'select_teams',
    'advance_round',
    'promote_teams',
    'get_promoted_teams',
    'submit_evaluation',
    'get_round_results',
]
