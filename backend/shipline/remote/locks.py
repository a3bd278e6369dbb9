"""
目标锁 - 同一远程目标上的上传与部署互斥
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class TargetLockRegistry:
    """按目标名分配互斥锁"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, target: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(target)
            if lock is None:
                lock = self._locks[target] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, target: str) -> Iterator[None]:
        """在上下文期间独占目标"""
        lock = self._lock_for(target)
        if not lock.acquire(blocking=False):
            logger.info(f"等待目标锁: {target}")
            lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def is_held(self, target: str) -> bool:
        return self._lock_for(target).locked()


# 进程内共享实例
target_locks = TargetLockRegistry()
