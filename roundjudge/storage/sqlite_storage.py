import json
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from roundjudge.infra.scoring.types import (
    Criterion,
    Evaluation,
    JudgeBreakdown,
    TeamRoundResult,
)
from roundjudge.utils.logger import get_logger

logger = get_logger(__name__)


class StorageError(Exception):
    """存储读写失败（事务已回滚）"""


def _now() -> str:
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())


class SQLiteStorage:
    """SQLite轮次评审数据读写操作封装"""

    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: 事务由 transaction() 显式控制
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        # 启用 WAL 模式，读操作在写事务提交前始终看到旧结果
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StorageError(f"无法连接数据库 {self.db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageError(f"{type(e).__name__}: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """写事务：全部成功才提交，任何异常都回滚"""
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def _ensure_tables(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS rounds (
                    id TEXT PRIMARY KEY,
                    event_id TEXT NOT NULL,
                    name TEXT,
                    round_number INTEGER NOT NULL,
                    status TEXT DEFAULT 'draft',
                    is_computed INTEGER DEFAULT 0,
                    computed_at TEXT,
                    created_at TEXT,
                    UNIQUE(event_id, round_number)
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS round_criteria (
                    id TEXT PRIMARY KEY,
                    round_id TEXT NOT NULL,
                    name TEXT,
                    max_marks REAL NOT NULL CHECK (max_marks > 0),
                    min_marks REAL DEFAULT 0,
                    weight REAL NOT NULL CHECK (weight > 0),
                    display_order INTEGER NOT NULL DEFAULT 0
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS round_judge_assignments (
                    round_id TEXT NOT NULL,
                    judge_id TEXT NOT NULL,
                    judge_type TEXT NOT NULL DEFAULT 'BOTH',
                    assigned_at TEXT,
                    UNIQUE(round_id, judge_id)
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS teams (
                    id TEXT PRIMARY KEY,
                    event_id TEXT,
                    name TEXT,
                    category TEXT
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS round_evaluations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    round_id TEXT NOT NULL,
                    judge_id TEXT NOT NULL,
                    team_id TEXT NOT NULL,
                    scores_json TEXT NOT NULL,
                    is_draft INTEGER NOT NULL DEFAULT 1,
                    submitted_at TEXT,
                    UNIQUE(round_id, judge_id, team_id)
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS team_round_results (
                    round_id TEXT NOT NULL,
                    team_id TEXT NOT NULL,
                    aggregated_z REAL NOT NULL,
                    rank INTEGER NOT NULL,
                    percentile REAL NOT NULL,
                    is_tied INTEGER NOT NULL DEFAULT 0,
                    judge_count INTEGER NOT NULL,
                    mean_raw_total REAL,
                    median_raw_total REAL,
                    criterion_z_json TEXT,
                    breakdown_json TEXT,
                    run_id TEXT,
                    computed_at TEXT,
                    PRIMARY KEY (round_id, team_id)
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS round_team_assignments (
                    round_id TEXT NOT NULL,
                    team_id TEXT NOT NULL,
                    source_round_id TEXT,
                    selection_mode TEXT,
                    selection_params_json TEXT,
                    assigned_at TEXT,
                    PRIMARY KEY (round_id, team_id)
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS round_compute_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    run_id TEXT NOT NULL,
                    round_id TEXT NOT NULL,
                    method TEXT NOT NULL,
                    params_json TEXT,
                    teams_evaluated INTEGER,
                    judges_count INTEGER,
                    computed_by TEXT,
                    computed_at TEXT
                );
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_round_criteria_round ON round_criteria (round_id);"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_round_evaluations_submitted ON round_evaluations (round_id, is_draft);"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_round_compute_logs_round ON round_compute_logs (round_id);"
            )

    # ==================== 轮次 ====================

    def upsert_round(
        self,
        round_id: str,
        event_id: str,
        round_number: int,
        name: Optional[str] = None,
        status: str = 'draft',
    ) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO rounds (id, event_id, name, round_number, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    event_id=excluded.event_id,
                    name=excluded.name,
                    round_number=excluded.round_number,
                    status=excluded.status;
                """,
                (round_id, event_id, name or f"Round {round_number}", round_number, status, _now()),
            )

    def get_round(self, round_id: str) -> Optional[Dict[str, Any]]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM rounds WHERE id = ? LIMIT 1;", (round_id,)
            ).fetchone()
        return dict(row) if row else None

    def find_round(self, event_id: str, round_number: int) -> Optional[Dict[str, Any]]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM rounds WHERE event_id = ? AND round_number = ? LIMIT 1;",
                (event_id, round_number),
            ).fetchone()
        return dict(row) if row else None

    # ==================== 评分标准 / 评委 / 团队 ====================

    def add_criterion(self, round_id: str, criterion: Criterion) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO round_criteria (id, round_id, name, max_marks, min_marks, weight, display_order)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    round_id=excluded.round_id,
                    name=excluded.name,
                    max_marks=excluded.max_marks,
                    min_marks=excluded.min_marks,
                    weight=excluded.weight,
                    display_order=excluded.display_order;
                """,
                (
                    criterion.id,
                    round_id,
                    criterion.name,
                    criterion.max_marks,
                    criterion.min_marks,
                    criterion.weight,
                    criterion.display_order,
                ),
            )

    def get_criteria(self, round_id: str) -> List[Criterion]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, name, max_marks, min_marks, weight, display_order
                FROM round_criteria
                WHERE round_id = ?
                ORDER BY display_order, id;
                """,
                (round_id,),
            ).fetchall()
        return [
            Criterion(
                id=row['id'],
                weight=float(row['weight']),
                max_marks=float(row['max_marks']),
                display_order=int(row['display_order']),
                name=row['name'] or '',
                min_marks=float(row['min_marks'] or 0),
            )
            for row in rows
        ]

    def assign_judge(self, round_id: str, judge_id: str, judge_type: str = 'BOTH') -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO round_judge_assignments (round_id, judge_id, judge_type, assigned_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(round_id, judge_id) DO UPDATE SET judge_type=excluded.judge_type;
                """,
                (round_id, judge_id, judge_type, _now()),
            )

    def get_judge_assignments(self, round_id: str) -> List[Dict[str, Any]]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT judge_id, judge_type FROM round_judge_assignments
                WHERE round_id = ?
                ORDER BY judge_id;
                """,
                (round_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def upsert_team(self, team_id: str, event_id: str, name: str, category: Optional[str] = None) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO teams (id, event_id, name, category) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    event_id=excluded.event_id, name=excluded.name, category=excluded.category;
                """,
                (team_id, event_id, name, category),
            )

    def get_team_names(self) -> Dict[str, str]:
        with self._connection() as conn:
            rows = conn.execute("SELECT id, name FROM teams;").fetchall()
        return {row['id']: row['name'] for row in rows}

    # ==================== 评审记录 ====================

    def save_evaluation(
        self,
        round_id: str,
        judge_id: str,
        team_id: str,
        scores: Dict[str, Any],
        is_draft: bool = False,
    ) -> int:
        """保存（覆盖）一位评委对一支团队的评分，返回记录ID"""
        scores_json = json.dumps(scores, ensure_ascii=False)
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO round_evaluations (round_id, judge_id, team_id, scores_json, is_draft, submitted_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(round_id, judge_id, team_id) DO UPDATE SET
                    scores_json=excluded.scores_json,
                    is_draft=excluded.is_draft,
                    submitted_at=excluded.submitted_at;
                """,
                (round_id, judge_id, team_id, scores_json, int(bool(is_draft)), _now()),
            )
            row = conn.execute(
                "SELECT id FROM round_evaluations WHERE round_id = ? AND judge_id = ? AND team_id = ?;",
                (round_id, judge_id, team_id),
            ).fetchone()
        return int(row['id'])

    def get_submitted_evaluations(self, round_id: str) -> List[Evaluation]:
        """读取某轮次全部已提交（非草稿）的评审"""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, judge_id, team_id, scores_json FROM round_evaluations
                WHERE round_id = ? AND is_draft = 0
                ORDER BY id;
                """,
                (round_id,),
            ).fetchall()
        evaluations: List[Evaluation] = []
        for row in rows:
            scores = self._parse_scores(row)
            if scores is None:
                continue
            evaluations.append(Evaluation(
                judge_id=row['judge_id'],
                team_id=row['team_id'],
                scores=scores,
                evaluation_id=row['id'],
            ))
        return evaluations

    @staticmethod
    def _parse_scores(row: sqlite3.Row) -> Optional[Dict[str, Any]]:
        """解析评分JSON，无法解析或不是对象时记录警告并返回 None"""
        try:
            scores = json.loads(row['scores_json'] or '{}')
        except (TypeError, ValueError) as e:
            logger.warning(
                f"评审记录 {row['id']} (judge={row['judge_id']}, team={row['team_id']}) 的评分JSON无法解析，已跳过: {e}"
            )
            return None
        if not isinstance(scores, dict):
            logger.warning(
                f"评审记录 {row['id']} (judge={row['judge_id']}, team={row['team_id']}) "
                f"的评分不是对象 ({type(scores).__name__})，已跳过"
            )
            return None
        return scores

    def count_evaluations(self, round_id: str) -> Dict[str, int]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT
                    COALESCE(SUM(CASE WHEN is_draft = 0 THEN 1 ELSE 0 END), 0) AS submitted,
                    COALESCE(SUM(CASE WHEN is_draft = 1 THEN 1 ELSE 0 END), 0) AS draft
                FROM round_evaluations WHERE round_id = ?;
                """,
                (round_id,),
            ).fetchone()
        return {'submitted': int(row['submitted']), 'draft': int(row['draft'])}

    # ==================== 计算结果 ====================

    def replace_round_results(
        self,
        round_id: str,
        results: Iterable[TeamRoundResult],
        compute_log: Dict[str, Any],
    ) -> None:
        """在一个事务内替换轮次的全部结果，并写入计算日志、更新轮次状态"""
        computed_at = compute_log.get('computed_at') or _now()
        run_id = compute_log['run_id']
        rows = [
            (
                round_id,
                r.team_id,
                r.aggregated_z,
                r.rank,
                r.percentile,
                int(r.is_tied),
                r.judge_count,
                r.mean_raw_total,
                r.median_raw_total,
                json.dumps(r.criterion_z, ensure_ascii=False),
                json.dumps([b.to_dict() for b in r.breakdown], ensure_ascii=False),
                run_id,
                computed_at,
            )
            for r in results
        ]

        with self.transaction() as conn:
            conn.execute("DELETE FROM team_round_results WHERE round_id = ?;", (round_id,))
            conn.executemany(
                """
                INSERT INTO team_round_results
                    (round_id, team_id, aggregated_z, rank, percentile, is_tied, judge_count,
                     mean_raw_total, median_raw_total, criterion_z_json, breakdown_json, run_id, computed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                rows,
            )
            conn.execute(
                """
                INSERT INTO round_compute_logs
                    (run_id, round_id, method, params_json, teams_evaluated, judges_count, computed_by, computed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    run_id,
                    round_id,
                    compute_log.get('method', 'Z_SCORE'),
                    json.dumps(compute_log.get('params', {}), ensure_ascii=False),
                    compute_log.get('teams_evaluated'),
                    compute_log.get('judges_count'),
                    compute_log.get('computed_by'),
                    computed_at,
                ),
            )
            conn.execute(
                "UPDATE rounds SET is_computed = 1, computed_at = ? WHERE id = ?;",
                (computed_at, round_id),
            )

        logger.debug(f"轮次 {round_id} 结果已替换: {len(rows)} 支团队 (run_id={run_id})")

    def get_round_results(self, round_id: str) -> List[TeamRoundResult]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM team_round_results
                WHERE round_id = ?
                ORDER BY rank, team_id;
                """,
                (round_id,),
            ).fetchall()
        return [
            TeamRoundResult(
                team_id=row['team_id'],
                aggregated_z=float(row['aggregated_z']),
                rank=int(row['rank']),
                percentile=float(row['percentile']),
                is_tied=bool(row['is_tied']),
                judge_count=int(row['judge_count']),
                mean_raw_total=float(row['mean_raw_total'] or 0),
                median_raw_total=float(row['median_raw_total'] or 0),
                criterion_z=json.loads(row['criterion_z_json'] or '{}'),
                breakdown=[
                    JudgeBreakdown.from_dict(item)
                    for item in json.loads(row['breakdown_json'] or '[]')
                ],
            )
            for row in rows
        ]

    def list_compute_logs(self, round_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT run_id, round_id, method, params_json, teams_evaluated, judges_count, computed_by, computed_at
                FROM round_compute_logs
                WHERE round_id = ?
                ORDER BY id DESC
                LIMIT ?;
                """,
                (round_id, limit),
            ).fetchall()
        logs = []
        for row in rows:
            record = dict(row)
            record['params'] = json.loads(record.pop('params_json') or '{}')
            logs.append(record)
        return logs

    # ==================== 晋级分配 ====================

    def upsert_team_assignments(
        self,
        target_round_id: str,
        team_ids: Iterable[str],
        source_round_id: Optional[str] = None,
        selection_mode: Optional[str] = None,
        selection_params: Optional[Dict[str, Any]] = None,
    ) -> int:
        """把团队分配到目标轮次，以 (round_id, team_id) 为键 upsert，返回写入的团队数"""
        params_json = json.dumps(selection_params or {}, ensure_ascii=False)
        now = _now()
        rows = [
            (target_round_id, team_id, source_round_id, selection_mode, params_json, now)
            for team_id in dict.fromkeys(team_ids)
        ]
        with self.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO round_team_assignments
                    (round_id, team_id, source_round_id, selection_mode, selection_params_json, assigned_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(round_id, team_id) DO UPDATE SET
                    source_round_id=excluded.source_round_id,
                    selection_mode=excluded.selection_mode,
                    selection_params_json=excluded.selection_params_json,
                    assigned_at=excluded.assigned_at;
                """,
                rows,
            )
        return len(rows)

    def get_team_assignments(self, round_id: str) -> List[Dict[str, Any]]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT round_id, team_id, source_round_id, selection_mode, selection_params_json, assigned_at
                FROM round_team_assignments
                WHERE round_id = ?
                ORDER BY team_id;
                """,
                (round_id,),
            ).fetchall()
        assignments = []
        for row in rows:
            record = dict(row)
            record['selection_params'] = json.loads(record.pop('selection_params_json') or '{}')
            assignments.append(record)
        return assignments
