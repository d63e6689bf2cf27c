"""In-process keyed locks serializing booking writes."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

REFERENCE_SEQUENCE_KEY = "booking:reference-sequence"


class KeyedLockRegistry:
    """One asyncio.Lock per key, kept only while someone holds or awaits it.

    Booking creation holds the car's lock across the availability check and
    the insert; read-modify-write on a booking holds that booking's lock.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for a key."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def acquire_car_lock(self, car_id: str):
        """Lock used while creating bookings for a car."""
        return self.acquire(f"car:{car_id}")

    def acquire_booking_lock(self, booking_id: str):
        """Lock used while mutating a single booking."""
        return self.acquire(f"booking:{booking_id}")

    def acquire_reference_lock(self):
        """Lock used while allocating a daily reference number."""
        return self.acquire(REFERENCE_SEQUENCE_KEY)

    def is_locked(self, key: str) -> bool:
        """Check if a key is currently held."""
        lock = self._locks.get(key)
        return bool(lock and lock.locked())
