#!/usr/bin/env python3
"""
端到端演示脚本
在临时数据库中构造一场两轮比赛，依次执行就绪检查、计算、选择和晋级
"""

import sys
import tempfile
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

try:
    from roundjudge.core import advance_round, check_readiness, compute_round, get_promoted_teams
    from roundjudge.core.leaderboard import build_judge_breakdown, build_leaderboard, get_round_results
    from roundjudge.core.validation import submit_evaluation
    from roundjudge.infra.scoring import Criterion
    from roundjudge.storage import SQLiteStorage
except ImportError as e:
    print(f"导入错误: {e}")
    print("\n💡 提示: 请先安装项目依赖:")
    print("   pip install -e .")
    sys.exit(1)


EVENT_ID = "demo-hackathon"
ROUND_ID = "demo-hackathon-round-1"

CRITERIA = [
    Criterion(id="innovation", name="Innovation", weight=40, max_marks=10, display_order=1),
    Criterion(id="execution", name="Execution", weight=35, max_marks=10, display_order=2),
    Criterion(id="pitch", name="Pitch", weight=25, max_marks=10, display_order=3),
]

TEAMS = {
    "team-alpha": "Team Alpha",
    "team-bravo": "Team Bravo",
    "team-charlie": "Team Charlie",
    "team-delta": "Team Delta",
    "team-echo": "Team Echo",
}

JUDGES = {
    "judge-hw": "HARDWARE",
    "judge-sw": "SOFTWARE",
    "judge-generous": "BOTH",
}

# 宽松评委整体打高分，标准化后与其他评委可比
SCORES = {
    "judge-hw": {
        "team-alpha": (8, 7, 6),
        "team-bravo": (6, 6, 7),
        "team-charlie": (5, 4, 5),
        "team-delta": (7, 8, 8),
    },
    "judge-sw": {
        "team-alpha": (7, 8, 7),
        "team-bravo": (5, 5, 6),
        "team-charlie": (6, 5, 4),
        "team-echo": (8, 6, 7),
    },
    "judge-generous": {
        "team-alpha": (10, 9, 9),
        "team-bravo": (9, 9, 9),
        "team-delta": (10, 10, 9),
        "team-echo": (9, 8, 10),
    },
}


def seed(storage: SQLiteStorage) -> None:
    storage.upsert_round(ROUND_ID, EVENT_ID, 1, name="Round 1", status="active")
    for criterion in CRITERIA:
        storage.add_criterion(ROUND_ID, criterion)
    for team_id, name in TEAMS.items():
        storage.upsert_team(team_id, EVENT_ID, name)
    for judge_id, judge_type in JUDGES.items():
        storage.assign_judge(ROUND_ID, judge_id, judge_type)

    for judge_id, team_scores in SCORES.items():
        for team_id, values in team_scores.items():
            scores = {c.id: v for c, v in zip(CRITERIA, values)}
            result = submit_evaluation(storage, ROUND_ID, judge_id, team_id, scores)
            if not result['success']:
                raise RuntimeError(f"提交评审失败: {result}")


def main():
    with tempfile.TemporaryDirectory() as tmp_dir:
        storage = SQLiteStorage(str(Path(tmp_dir) / "demo.db"))
        seed(storage)

        readiness = check_readiness(storage, ROUND_ID)
        print(f"\n就绪检查: {readiness}")

        result = compute_round(storage, ROUND_ID, computed_by="demo-admin")
        if not result['success']:
            print(f"计算失败: {result['error']}")
            return 1
        print(f"计算完成: {result['stats']}")

        results = get_round_results(storage, ROUND_ID)
        print("\n排行榜:")
        print(build_leaderboard(results, storage.get_team_names()).to_string(index=False))
        print("\n评委明细:")
        print(build_judge_breakdown(results).to_string(index=False))

        advance = advance_round(storage, ROUND_ID, "GLOBAL_TOP_K", {"k": 3}, create_next_round=True)
        print(f"\n晋级结果: {advance}")
        if advance['success'] and advance.get('target_round_id'):
            promoted = get_promoted_teams(storage, advance['target_round_id'])
            print(f"进入 {advance['target_round_id']} 的团队: {[p['team_id'] for p in promoted]}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
