"""
Caller-supplied cancellation for long-running operations.
"""

import threading
import time

from p2p_transfer.domain.exceptions import TransferCancelled


class CancellationToken:
    """
    Cancellation signal with an optional deadline.

    Safe to share between threads: one thread may call ``cancel`` while
    another runs the operation.
    """

    def __init__(self, timeout: float | None = None) -> None:
        """
        Args:
            timeout: Seconds from now after which the token counts as
                cancelled. ``None`` means no deadline.
        """
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + timeout if timeout is not None else None
        )

    @classmethod
    def with_deadline(cls, seconds: float) -> "CancellationToken":
        return cls(timeout=seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def deadline_passed(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.deadline_passed

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            reason = "deadline exceeded" if self.deadline_passed else "cancelled"
            raise TransferCancelled(f"Operation {reason}")
