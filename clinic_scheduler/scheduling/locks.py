"""
Serialization of occupancy writes per ``(date, modality)``.

Within one process a keyed ``threading.Lock`` registry does the work. On
PostgreSQL a transaction-scoped advisory lock is taken as well so that
several worker processes serialize too; it is released by the commit or
rollback that ends the caller's transaction.
"""

import zlib
from contextlib import contextmanager
from datetime import date
from threading import Lock
from typing import Iterable, Iterator

from sqlalchemy import text
from sqlalchemy.orm import Session

from clinic_scheduler.models.enums import Modality

OccupancyKey = tuple[date, Modality]


def advisory_key(key: OccupancyKey) -> int:
    on_date, modality = key
    # crc32 is stable across processes, unlike hash().
    return zlib.crc32(f'{on_date.isoformat()}|{modality.value}'.encode())


class OccupancyLocks:
    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[OccupancyKey, Lock] = {}
        self._holders: dict[OccupancyKey, int] = {}

    def _checkout(self, key: OccupancyKey) -> Lock:
        with self._guard:
            lock = self._locks.setdefault(key, Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
            return lock

    def _checkin(self, key: OccupancyKey) -> None:
        with self._guard:
            remaining = self._holders[key] - 1
            if remaining:
                self._holders[key] = remaining
            else:
                del self._holders[key]
                del self._locks[key]

    @contextmanager
    def hold(self, db: Session, keys: Iterable[OccupancyKey]) -> Iterator[None]:
        """Lock ``keys`` for the duration of the block.

        Any transaction already open on ``db`` is committed first, so reads
        made under the lock start from a fresh snapshot and no database lock
        taken by earlier reads is carried into the wait.
        """
        ordered = sorted(set(keys), key=lambda key: (key[0], key[1].value))
        acquired: list[tuple[OccupancyKey, Lock]] = []
        if db.in_transaction():
            db.commit()
        try:
            for key in ordered:
                lock = self._checkout(key)
                lock.acquire()
                acquired.append((key, lock))

            if db.get_bind().dialect.name == 'postgresql':
                for key in ordered:
                    db.execute(text('SELECT pg_advisory_xact_lock(:key)'), {'key': advisory_key(key)})

            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)

    def active_keys(self) -> set[OccupancyKey]:
        with self._guard:
            return set(self._locks)


occupancy_locks = OccupancyLocks()
