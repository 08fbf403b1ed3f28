# tipbot/mutex.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from tipbot.errors import BusyError


class TransferMutex:
    """Single-slot, non-blocking gate: at most one transfer in flight.

    The slot lives in process memory only. If the process dies while it is
    held, nothing releases it; a restart is the only recovery.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def locked(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False

    @contextmanager
    def hold(self) -> Iterator[None]:
        if not self.try_acquire():
            raise BusyError("a transfer is already pending")
        try:
            yield
        finally:
            self.release()
