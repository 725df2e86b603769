import argparse
import json
from pathlib import Path

from roundjudge.core import (
    advance_round,
    check_readiness,
    compute_round,
    get_promoted_teams,
    promote_teams,
    select_teams,
)
from roundjudge.core.leaderboard import build_leaderboard, get_round_results
from roundjudge.infra.config import ConfigManager
from roundjudge.storage import SQLiteStorage
from roundjudge.utils.env_loader import load_project_env
from roundjudge.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / 'configs' / 'default.yaml'


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _parse_params(raw: str) -> dict:
    if not raw:
        return {}
    params = json.loads(raw)
    if not isinstance(params, dict):
        raise ValueError("--params 必须是JSON对象")
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RoundJudge 评审分数标准化与轮次晋级")
    parser.add_argument('--config', type=str, default=str(DEFAULT_CONFIG_PATH), help='YAML配置文件路径')
    subparsers = parser.add_subparsers(dest='command', required=True)

    readiness = subparsers.add_parser('readiness', help='检查轮次是否可以计算')
    readiness.add_argument('round_id')

    compute = subparsers.add_parser('compute', help='计算轮次排名')
    compute.add_argument('round_id')
    compute.add_argument('--computed-by', default=None, help='发起计算的用户ID')

    results = subparsers.add_parser('results', help='显示轮次排行榜')
    results.add_argument('round_id')

    for name, help_text in (('select', '预览晋级选择'), ('advance', '执行晋级')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('round_id')
        sub.add_argument('--mode', default=None, help='GLOBAL_TOP_K 或 PER_JUDGE_TOP_N')
        sub.add_argument('--params', default='', help='策略参数（JSON），如 {"k": 5}')
        if name == 'advance':
            sub.add_argument('--target-round', default=None, help='目标轮次ID')
            sub.add_argument('--create-next-round', action='store_true', help='目标轮次不存在时自动创建')

    promote = subparsers.add_parser('promote', help='把指定团队写入目标轮次')
    promote.add_argument('source_round_id')
    promote.add_argument('target_round_id')
    promote.add_argument('team_ids', nargs='+')

    assignments = subparsers.add_parser('assignments', help='显示分配到某轮次的团队')
    assignments.add_argument('round_id')

    return parser


def main(argv=None):
    load_project_env()

    args = build_parser().parse_args(argv)

    try:
        config_manager = ConfigManager(args.config)
        log_path = configure_logging(config_manager.get_logging_settings())
        logger.info(f"RoundJudge 启动 - 配置文件: {args.config}")
        if log_path:
            logger.info(f"日志文件: {log_path}")
        validation_errors = config_manager.validate_config()
        if validation_errors:
            logger.error("配置验证失败，发现以下问题：")
            for error in validation_errors:
                logger.error(f"  - {error}")
            return 1
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"配置加载失败: {e}")
        return 1

    storage = SQLiteStorage(config_manager.get_storage_db_path())

    if args.command == 'readiness':
        result = check_readiness(storage, args.round_id)
        _print_json(result)
        return 0 if result['ready'] else 1

    if args.command == 'compute':
        result = compute_round(storage, args.round_id, computed_by=args.computed_by,
                               **config_manager.get_compute_options())
        _print_json(result)
        return 0 if result['success'] else 1

    if args.command == 'results':
        team_names = storage.get_team_names()
        df = build_leaderboard(get_round_results(storage, args.round_id), team_names)
        if df.empty:
            logger.warning(f"轮次 {args.round_id} 尚无计算结果")
            return 1
        print(df.to_string(index=False))
        return 0

    if args.command in ('select', 'advance'):
        mode = args.mode or config_manager.get_default_selection_mode()
        try:
            params = _parse_params(args.params)
            defaults = config_manager.get_selection_defaults(mode)
        except ValueError as e:
            logger.error(f"参数错误: {e}")
            return 1
        if args.command == 'select':
            result = select_teams(storage, args.round_id, mode, params, defaults=defaults)
        else:
            result = advance_round(
                storage,
                args.round_id,
                mode,
                params,
                target_round_id=args.target_round,
                create_next_round=args.create_next_round,
                defaults=defaults,
            )
        _print_json(result)
        return 0 if result['success'] else 1

    if args.command == 'promote':
        result = promote_teams(storage, args.source_round_id, args.target_round_id, args.team_ids, mode='MANUAL')
        _print_json(result)
        return 0 if result['success'] else 1

    if args.command == 'assignments':
        _print_json(get_promoted_teams(storage, args.round_id))
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
