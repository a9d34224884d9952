"""In-process serialization of work targeting the same namespace."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger


class BranchLockRegistry:
    """One asyncio lock per namespace.

    Deploys and teardowns of the same branch queue behind each other within
    one process. Separate processes are not coordinated. A lock is dropped as
    soon as no holder or waiter references it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, namespace: str) -> bool:
        lock = self._locks.get(namespace)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, namespace: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(namespace, asyncio.Lock())
        self._users[namespace] = self._users.get(namespace, 0) + 1
        try:
            if lock.locked():
                logger.info(f"Waiting for in-flight work on namespace {namespace}")
            async with lock:
                yield
        finally:
            self._users[namespace] -= 1
            if not self._users[namespace]:
                del self._users[namespace]
                del self._locks[namespace]
