"""Thread-safe transfer progress counter."""

import threading
from typing import Callable, List, Optional

from common.logging_config import get_logger

logger = get_logger(__name__)

ProgressListener = Callable[["TransferProgress", int], None]


class TransferProgress:
    """
    Polling counter of bytes moved over the wire.

    Transfers call add() with byte deltas; presentation code either polls
    ``transferred`` or registers listeners. A failing listener is logged and
    never interrupts the transfer that reported the delta.
    """

    def __init__(self, label: str, total: Optional[int] = None):
        self.label = label
        self.total = total
        self._transferred = 0
        self._lock = threading.Lock()
        self._listeners: List[ProgressListener] = []

    @property
    def transferred(self) -> int:
        with self._lock:
            return self._transferred

    @property
    def fraction(self) -> Optional[float]:
        if not self.total:
            return None
        return min(1.0, self.transferred / self.total)

    def subscribe(self, listener: ProgressListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def add(self, delta: int) -> None:
        """
        Record a byte delta and notify listeners.

        Args:
            delta: Bytes moved since the previous call
        """
        if delta <= 0:
            return
        with self._lock:
            self._transferred += delta
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(self, delta)
            except Exception as e:
                logger.warning(f"Progress listener failed for {self.label}: {e}")
