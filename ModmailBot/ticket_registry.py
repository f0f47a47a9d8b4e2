from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class TicketRegistry:
    """In-memory user_id -> ticket channel_id map (one open ticket per user).

    A channel_id -> user_id index is kept alongside so staff-side events,
    which arrive keyed by channel, resolve in O(1).

    Callers must run any check-then-create or close sequence inside
    `hold(user_id)`; the registry itself does not enforce the precondition of
    `open()` because channel creation happens outside of it.
    """

    def __init__(self):
        self._by_user: dict[int, int] = {}
        self._by_channel: dict[int, int] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        # Tasks holding or waiting on each user lock; the lock is dropped at zero.
        self._holders: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._by_user)

    def __contains__(self, user_id: object) -> bool:
        try:
            return int(user_id) in self._by_user  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False

    def items(self) -> list[tuple[int, int]]:
        return list(self._by_user.items())

    def lookup(self, user_id: int) -> int | None:
        return self._by_user.get(int(user_id))

    def reverse_lookup(self, channel_id: int) -> int | None:
        return self._by_channel.get(int(channel_id))

    def open(self, user_id: int, channel_id: int) -> None:
        uid, cid = int(user_id), int(channel_id)
        old = self._by_user.get(uid)
        if old is not None and old != cid:
            self._by_channel.pop(old, None)
        self._by_user[uid] = cid
        self._by_channel[cid] = uid

    def close(self, user_id: int) -> int | None:
        cid = self._by_user.pop(int(user_id), None)
        if cid is not None:
            self._by_channel.pop(cid, None)
        return cid

    def lock_for(self, user_id: int) -> asyncio.Lock:
        uid = int(user_id)
        lock = self._locks.get(uid)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[uid] = lock
        return lock

    def has_lock(self, user_id: int) -> bool:
        return int(user_id) in self._locks

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        """Serialize one user's ticket work; the lock is forgotten once idle."""
        uid = int(user_id)
        lock = self.lock_for(uid)
        self._holders[uid] = self._holders.get(uid, 0) + 1
        try:
            async with lock:
                yield
        finally:
            left = self._holders[uid] - 1
            if left:
                self._holders[uid] = left
            else:
                del self._holders[uid]
                self._locks.pop(uid, None)
