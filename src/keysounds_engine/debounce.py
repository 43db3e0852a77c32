"""Coalescing queue for debounced work.

Nothing here starts threads or timers. The host event loop calls ``poll()``
(through ``EngineContext.tick``) and due work runs on its thread.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .exceptions import PersistenceFailure
from .storage import Section
from .storage import YamlStorage

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class _Pending:
    due: float
    work: Callable[[], None]


class Debouncer:
    """Runs keyed work once its key has been quiet for ``interval`` seconds.

    Submitting work for a key that already has pending work replaces it and
    restarts the quiet interval.

    Args:
        interval: Quiet interval in seconds
        clock: Monotonic time source
    """

    def __init__(self, interval: float, clock: Clock = time.monotonic):
        self.interval = interval
        self._clock = clock
        self._pending: dict[Any, _Pending] = {}

    def submit(self, key: Any, work: Callable[[], None]) -> None:
        if key in self._pending:
            # Re-inserting moves the key to the end so poll() keeps submission order.
            del self._pending[key]
        self._pending[key] = _Pending(due=self._clock() + self.interval, work=work)

    def cancel(self, key: Any) -> bool:
        """Drop pending work for ``key``. Returns True if any was pending."""
        return self._pending.pop(key, None) is not None

    def is_pending(self, key: Any) -> bool:
        return key in self._pending

    def poll(self, now: float | None = None) -> list[Any]:
        """Run all work whose quiet interval has elapsed.

        Returns:
            Keys whose work ran, in submission order
        """
        now = self._clock() if now is None else now
        due = [key for key, pending in self._pending.items() if pending.due <= now]
        for key in due:
            pending = self._pending.pop(key)
            pending.work()
        return due

    def flush(self) -> list[Any]:
        """Run all pending work immediately."""
        keys = list(self._pending)
        for key in keys:
            pending = self._pending.pop(key)
            pending.work()
        return keys


class DebouncedWriter:
    """Coalesces rapid edits of a section into a single storage write.

    A failed write is logged and resubmitted, so it is retried after the next
    quiet interval. The in-memory state that produced the payload stays
    authoritative.

    Args:
        storage: Destination for section writes
        interval: Quiet interval in seconds
        clock: Monotonic time source
    """

    def __init__(self, storage: YamlStorage, interval: float = 0.5, clock: Clock = time.monotonic):
        self.storage = storage
        self._debouncer = Debouncer(interval, clock)

    def schedule(self, section: Section, payload: Any) -> None:
        self._debouncer.submit(section, lambda: self._write(section, payload))

    def cancel(self, section: Section) -> bool:
        cancelled = self._debouncer.cancel(section)
        if cancelled:
            logger.debug(f"Cancelled pending {section.value} write")
        return cancelled

    def is_pending(self, section: Section) -> bool:
        return self._debouncer.is_pending(section)

    def poll(self, now: float | None = None) -> list[Section]:
        return self._debouncer.poll(now)

    def flush(self) -> list[Section]:
        return self._debouncer.flush()

    def _write(self, section: Section, payload: Any) -> None:
        try:
            self.storage.write(section, payload)
        except PersistenceFailure as e:
            logger.warning(f"{e}; retrying after next quiet interval")
            if not self._debouncer.is_pending(section):
                self.schedule(section, payload)
