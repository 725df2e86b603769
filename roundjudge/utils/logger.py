"""
日志配置模块

所有模块通过 get_logger(__name__) 获取 roundjudge 包下的子记录器，
处理器只挂在包记录器 "roundjudge" 上，子记录器向上传递。
默认只输出到控制台；入口程序用 configure_logging() 按 YAML 中的 logging 段重新配置，
可以追加按日期命名的日志文件。
"""
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

PACKAGE_LOGGER_NAME = 'roundjudge'

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# 由本模块安装的处理器带有该标记，重新配置时只替换这些处理器
_MANAGED_FLAG = '_roundjudge_managed'

_default_installed = False


def default_logs_dir() -> Path:
    """日志目录：环境变量 ROUNDJUDGE_LOGS_DIR 优先，否则为项目根目录下的 logs/"""
    override = os.getenv('ROUNDJUDGE_LOGS_DIR')
    if override:
        return Path(override).expanduser()
    return PROJECT_ROOT / 'logs'


def daily_log_file_name(prefix: str = PACKAGE_LOGGER_NAME) -> str:
    return f"{prefix}_{time.strftime('%Y_%m_%d', time.localtime())}.log"


def resolve_level(level: Union[str, int, None]) -> int:
    """把 'debug' / 'INFO' / 10 等写法转换为 logging 级别，无法识别时为 INFO"""
    if isinstance(level, int):
        return level
    if level:
        resolved = logging.getLevelName(str(level).strip().upper())
        if isinstance(resolved, int):
            return resolved
    return logging.INFO


def _mark(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    setattr(handler, _MANAGED_FLAG, True)
    return handler


def _remove_managed_handlers(target: logging.Logger) -> None:
    for handler in list(target.handlers):
        if getattr(handler, _MANAGED_FLAG, False):
            target.removeHandler(handler)
            handler.close()


def _qualified_name(name: Optional[str]) -> str:
    """把模块名映射到 roundjudge 包记录器之下（如 __main__ -> roundjudge.__main__）"""
    if not name or name == PACKAGE_LOGGER_NAME:
        return PACKAGE_LOGGER_NAME
    if name.startswith(PACKAGE_LOGGER_NAME + '.'):
        return name
    return f"{PACKAGE_LOGGER_NAME}.{name}"


def setup_logger(
    level: Union[str, int] = 'INFO',
    log_to_file: bool = False,
    log_to_console: bool = True,
    log_dir: Optional[Union[str, Path]] = None,
    log_file_name: Optional[str] = None,
    encoding: str = 'utf-8',
) -> Optional[Path]:
    """
    (重新)配置包记录器的处理器

    之前由本模块安装的处理器会被关闭并替换，其他代码挂上的处理器保持不变。

    Returns:
        日志文件路径；未写文件或日志目录不可写时为 None
    """
    global _default_installed

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    log_level = resolve_level(level)
    package_logger.setLevel(log_level)
    package_logger.propagate = False
    _remove_managed_handlers(package_logger)
    _default_installed = True

    if log_to_console:
        package_logger.addHandler(_mark(logging.StreamHandler(sys.stdout), log_level))

    if not log_to_file:
        return None

    target_dir = Path(log_dir).expanduser() if log_dir else default_logs_dir()
    log_path = target_dir / (log_file_name or daily_log_file_name())
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding=encoding, mode='a')
    except OSError as e:
        package_logger.warning(f"无法创建日志文件 {log_path}，仅输出到控制台: {e}")
        return None

    package_logger.addHandler(_mark(file_handler, log_level))
    return log_path


def configure_logging(settings: Optional[Dict[str, Any]] = None) -> Optional[Path]:
    """按 ConfigManager.get_logging_settings() 返回的字典配置日志"""
    settings = settings or {}
    return setup_logger(
        level=settings.get('level', 'INFO'),
        log_to_file=bool(settings.get('log_to_file', False)),
        log_to_console=bool(settings.get('log_to_console', True)),
        log_dir=settings.get('log_dir'),
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """获取 roundjudge 包下的记录器；包记录器尚未配置时先安装默认的控制台输出"""
    if not _default_installed:
        setup_logger()
    return logging.getLogger(_qualified_name(name))
