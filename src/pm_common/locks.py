"""In-process keyed mutual exclusion.

Serializes coroutines that share a key (a user id, a market id). The lock
table only holds keys that currently have a holder or waiter, so it does not
grow with the number of users seen.

Cross-process exclusion is the store's job (advisory locks, unique
constraints); this only removes contention inside one worker.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLock:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._refs: dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks[key]
        self._refs[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._refs[key] -= 1
            if self._refs[key] == 0:
                del self._refs[key]
                del self._locks[key]
