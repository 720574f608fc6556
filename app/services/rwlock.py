"""
Async reader/writer lock guarding the cross-reference index.

Any number of readers may hold the lock together; a writer holds it alone.
The lock is writer-preferring: once a writer is waiting, new readers queue
behind it, so a steady stream of page requests cannot starve a cascade.

Not reentrant. A task holding the read side must not ask for the write
side (or vice versa) — it would wait on itself.

Usage:
    lock = ReadWriteLock()
    async with lock.read():
        ...
    async with lock.write():
        ...
"""

import asyncio
from contextlib import asynccontextmanager


class ReadWriteLock:

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def write_locked(self) -> bool:
        return self._writer

    @asynccontextmanager
    async def read(self):
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._writer and self._waiting_writers == 0
            )
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self):
        async with self._cond:
            self._waiting_writers += 1
            try:
                await self._cond.wait_for(
                    lambda: not self._writer and self._readers == 0
                )
            except BaseException:
                # Cancelled while queued: readers held back by us may proceed
                self._waiting_writers -= 1
                self._cond.notify_all()
                raise
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()
