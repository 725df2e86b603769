"""
统一配置管理器
加载和解析YAML配置文件，支持环境变量解析、配置验证
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import os

import yaml

DEFAULT_DB_PATH = 'data/roundjudge.db'
DEFAULT_TIE_EPSILON = 1e-4
DEFAULT_WEIGHT_SCALE = 100.0
DEFAULT_SELECTION_MODE = 'GLOBAL_TOP_K'
DEFAULT_TOP_K = 10
DEFAULT_TOP_N = 5
DEFAULT_JUDGE_TYPES = ['HARDWARE', 'SOFTWARE', 'BOTH']
SELECTION_MODES = ('GLOBAL_TOP_K', 'PER_JUDGE_TOP_N')


class ConfigManager:
    """统一配置管理器: 加载YAML配置、解析环境变量、提供配置访问接口"""

    def __init__(self, config_path: str):
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"配置文件不存在: {config_path}")

        self._config = self._load_config()

    def _load_config(self) -> dict:
        """加载配置文件"""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
                if not config:
                    raise ValueError("配置文件为空")
                if not isinstance(config, dict):
                    raise ValueError("配置文件顶层必须是映射")
                return config
        except yaml.YAMLError as e:
            raise ValueError(f"配置文件格式错误: {e}")

    def _resolve_env_var(self, value: Any) -> Any:
        """解析环境变量格式的配置值，支持格式: env_var:VARIABLE_NAME"""
        if isinstance(value, str) and value.startswith("env_var:"):
            env_key = value[8:]  # 移除 "env_var:" 前缀
            env_value = os.getenv(env_key)
            if env_value is None:
                raise ValueError(f"环境变量 {env_key} 未设置")
            return env_value
        return value

    def get_raw_config(self) -> dict:
        """获取原始配置字典"""
        return self._config

    def get_run_name(self) -> str:
        """获取运行名称"""
        return self._config.get('run_name', 'RoundJudge')

    # ==================== 存储配置 ====================

    def get_storage_config(self) -> Dict:
        """获取存储配置"""
        return self._config.get('storage', {}) or {}

    def get_storage_db_path(self) -> str:
        """获取SQLite数据库路径"""
        sqlite_config = self.get_storage_config().get('sqlite', {}) or {}
        return self._resolve_env_var(sqlite_config.get('db_path', DEFAULT_DB_PATH))

    # ==================== 计算配置 ====================

    def get_computation_settings(self) -> Dict:
        """获取轮次计算配置"""
        return self._config.get('computation', {}) or {}

    def get_normalization_method(self) -> str:
        return self.get_computation_settings().get('method', 'Z_SCORE')

    def get_tie_epsilon(self) -> float:
        """获取并列判定的浮点容差"""
        return float(self.get_computation_settings().get('tie_epsilon', DEFAULT_TIE_EPSILON))

    def get_weight_scale(self) -> float:
        """获取标准权重换算基数（weightedZ = z * weight / weight_scale）"""
        return float(self.get_computation_settings().get('weight_scale', DEFAULT_WEIGHT_SCALE))

    def get_lock_timeout(self) -> Optional[float]:
        """获取轮次计算锁的等待时间（秒），None表示无限等待"""
        timeout = self.get_computation_settings().get('lock_timeout_s')
        return None if timeout is None else float(timeout)

    def get_compute_options(self) -> Dict[str, Any]:
        """组装 compute_round 所需的关键字参数"""
        return {
            'tie_epsilon': self.get_tie_epsilon(),
            'weight_scale': self.get_weight_scale(),
            'lock_timeout_s': self.get_lock_timeout(),
        }

    # ==================== 晋级选择配置 ====================

    def get_selection_settings(self) -> Dict:
        """获取晋级选择配置"""
        return self._config.get('selection', {}) or {}

    def get_default_selection_mode(self) -> str:
        return self.get_selection_settings().get('default_mode', DEFAULT_SELECTION_MODE)

    def get_selection_defaults(self, mode: str) -> Dict[str, Any]:
        """获取指定选择模式的默认参数"""
        settings = self.get_selection_settings()
        if mode == 'GLOBAL_TOP_K':
            section = settings.get('global_top_k', {}) or {}
            return {'k': section.get('k', DEFAULT_TOP_K)}
        if mode == 'PER_JUDGE_TOP_N':
            section = settings.get('per_judge_top_n', {}) or {}
            return {
                'n': section.get('n', DEFAULT_TOP_N),
                'judge_types': list(section.get('judge_types', DEFAULT_JUDGE_TYPES)),
            }
        raise ValueError(f"不支持的选择模式: {mode}")

    # ==================== 日志配置 ====================

    def get_logging_settings(self) -> Dict:
        """获取日志配置"""
        settings = self._config.get('logging', {}) or {}
        return {
            'level': settings.get('level', 'INFO'),
            'log_to_file': settings.get('log_to_file', True),
            'log_to_console': settings.get('log_to_console', True),
            'log_dir': settings.get('log_dir'),
        }

    def validate_config(self) -> List[str]:
        """验证配置文件的完整性和有效性"""
        errors = []

        sqlite_config = self.get_storage_config().get('sqlite', {}) or {}
        if not sqlite_config.get('db_path'):
            errors.append("缺少必要配置: storage.sqlite.db_path")

        computation = self.get_computation_settings()
        method = computation.get('method', 'Z_SCORE')
        if method != 'Z_SCORE':
            errors.append(f"不支持的标准化方法: {method}")
        try:
            if self.get_weight_scale() <= 0:
                errors.append("computation.weight_scale 必须大于0")
        except (TypeError, ValueError):
            errors.append("computation.weight_scale 必须是数字")
        try:
            if self.get_tie_epsilon() < 0:
                errors.append("computation.tie_epsilon 不能为负数")
        except (TypeError, ValueError):
            errors.append("computation.tie_epsilon 必须是数字")

        mode = self.get_default_selection_mode()
        if mode not in SELECTION_MODES:
            errors.append(f"selection.default_mode 不合法: {mode}")

        for mode_name, key in (('GLOBAL_TOP_K', 'k'), ('PER_JUDGE_TOP_N', 'n')):
            value = self.get_selection_defaults(mode_name)[key]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(f"{mode_name} 的参数 {key} 必须是非负整数")

        return errors
