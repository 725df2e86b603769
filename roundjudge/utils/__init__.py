"""
工具模块
日志配置与 .env 加载
"""

from roundjudge.utils.env_loader import load_project_env
from roundjudge.utils.logger import (
    configure_logging,
    get_logger,
    setup_logger,
)

__all__ = [
    'configure_logging',
    'get_logger',
    'load_project_env',
    'setup_logger',
]
