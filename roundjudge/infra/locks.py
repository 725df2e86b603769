"""
轮次计算锁
同一进程内串行化同一轮次的重算，防止两次计算交错执行“删除旧结果-写入新结果”

该锁是进程内锁（threading.Lock），多进程部署下由数据库事务（BEGIN IMMEDIATE）保证写入原子性。
登记表只保留正在使用的轮次锁：最后一个持有或等待者离开后即移除。
"""

from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator, Optional

_REGISTRY_LOCK = Lock()
_ROUND_LOCKS: Dict[str, "_RoundLockEntry"] = {}


class RoundLockTimeout(TimeoutError):
    """在超时时间内未获取到轮次锁"""


class _RoundLockEntry:
    """轮次锁及当前持有/等待它的调用方数量"""

    __slots__ = ('lock', 'users')

    def __init__(self) -> None:
        self.lock = Lock()
        self.users = 0


def _checkout(round_id: str) -> _RoundLockEntry:
    with _REGISTRY_LOCK:
        entry = _ROUND_LOCKS.get(round_id)
        if entry is None:
            entry = _RoundLockEntry()
            _ROUND_LOCKS[round_id] = entry
        entry.users += 1
        return entry


def _checkin(round_id: str, entry: _RoundLockEntry) -> None:
    with _REGISTRY_LOCK:
        entry.users -= 1
        if entry.users <= 0 and _ROUND_LOCKS.get(round_id) is entry:
            del _ROUND_LOCKS[round_id]


def is_round_locked(round_id: str) -> bool:
    """轮次当前是否正在计算"""
    with _REGISTRY_LOCK:
        entry = _ROUND_LOCKS.get(round_id)
    return entry is not None and entry.lock.locked()


def tracked_round_count() -> int:
    """登记表中的轮次锁数量"""
    with _REGISTRY_LOCK:
        return len(_ROUND_LOCKS)


@contextmanager
def round_compute_lock(
    round_id: str,
    *,
    timeout_s: Optional[float] = None,
    reason: str = "",
) -> Iterator[None]:
    """
    串行化同一轮次的计算

    Args:
        round_id: 轮次ID，不同轮次互不阻塞
        timeout_s: 获取锁的超时时间（秒），None 表示无限等待，负数视为不等待
        reason: 日志/异常中的说明文字

    Raises:
        RoundLockTimeout: 超时仍未获取到锁

    Usage:
        with round_compute_lock(round_id, reason="compute_round"):
            ...  # 读取快照 + 计算 + 原子写入
    """
    entry = _checkout(round_id)
    try:
        if timeout_s is None:
            acquired = entry.lock.acquire()
        else:
            acquired = entry.lock.acquire(timeout=max(float(timeout_s), 0.0))

        if not acquired:
            msg = f"round_compute_lock timeout (round_id={round_id}, timeout_s={timeout_s})"
            if reason:
                msg += f" reason={reason}"
            raise RoundLockTimeout(msg)

        try:
            yield
        finally:
            entry.lock.release()
    finally:
        _checkin(round_id, entry)
