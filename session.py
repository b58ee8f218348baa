import logging
import threading
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 1.0


class LogUnavailableError(RuntimeError):
    """The message log lock could not be acquired in time."""


class MessageLog:
    """Append-only list of chat lines shared by the receiver and the UI loop."""

    def __init__(self, lock_timeout: float = LOCK_TIMEOUT):
        self._lines = []
        self._lock = threading.Lock()
        self.lock_timeout = lock_timeout

    def _acquire(self, operation: str):
        if not self._lock.acquire(timeout=self.lock_timeout):
            logger.warning(f"Message log busy, skipping {operation}")
            raise LogUnavailableError(f"message log lock not acquired for {operation}")

    def append(self, line: str) -> int:
        self._acquire("append")
        try:
            self._lines.append(line)
            return len(self._lines)
        finally:
            self._lock.release()

    def windowed_snapshot(self, max_rows: int) -> list:
        if max_rows <= 0:
            return []
        self._acquire("snapshot")
        try:
            return self._lines[-max_rows:]
        finally:
            self._lock.release()

    def snapshot(self) -> list:
        self._acquire("snapshot")
        try:
            return list(self._lines)
        finally:
            self._lock.release()

    def __len__(self):
        with self._lock:
            return len(self._lines)


class TerminationSignal:
    """One-way flag: once set it stays set."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()

    def set(self) -> bool:
        # True only for the call that flipped it
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout=None) -> bool:
        return self._event.wait(timeout)


class RedrawFlag:
    """Dirty marker with many setters and a single clearing consumer."""

    def __init__(self, dirty: bool = False):
        self._dirty = dirty
        self._lock = threading.Lock()

    def mark(self):
        with self._lock:
            self._dirty = True

    def is_set(self) -> bool:
        with self._lock:
            return self._dirty

    def test_and_clear(self) -> bool:
        with self._lock:
            was_dirty = self._dirty
            self._dirty = False
            return was_dirty


@dataclass
class ChatSession:
    log: MessageLog = field(default_factory=MessageLog)
    terminated: TerminationSignal = field(default_factory=TerminationSignal)
    # starts dirty so the first loop iteration draws the empty screen
    redraw: RedrawFlag = field(default_factory=lambda: RedrawFlag(dirty=True))

    def record(self, line: str) -> int:
        """Append a line and flag the screen for redraw."""
        count = self.log.append(line)
        self.redraw.mark()
        return count
