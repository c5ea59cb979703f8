"""
Bounded pool of execution slots, one per physical core.
"""
import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class SlotPool:
    """
    Tracks how many of a fixed number of slots are held by running jobs.

    All mutation goes through a single condition variable, so releases from
    job waiter threads and acquires from the dispatcher never race. release()
    wakes one blocked acquire() immediately; acquire() also re-checks every
    poll_interval seconds so a stop request is noticed while waiting.
    """

    def __init__(self, capacity: int, poll_interval: float = 5.0):
        """
        Args:
            capacity: Number of slots (values below 1 are clamped to 1)
            poll_interval: Maximum seconds between re-checks while waiting
        """
        self.capacity = max(1, int(capacity or 0))
        self.poll_interval = poll_interval
        self.peak = 0
        self._occupied = 0
        self._condition = threading.Condition()

    @property
    def occupied(self) -> int:
        with self._condition:
            return self._occupied

    def available_count(self) -> int:
        with self._condition:
            return self.capacity - self._occupied

    def try_acquire(self) -> bool:
        """Take a slot if one is free. Never blocks."""
        with self._condition:
            if self._occupied >= self.capacity:
                return False
            self._occupied += 1
            self.peak = max(self.peak, self._occupied)
            return True

    def acquire(self, stop_event: Optional[threading.Event] = None) -> bool:
        """
        Block until a slot is taken or stop_event is set.

        Returns:
            True if a slot was acquired, False if stopped first
        """
        with self._condition:
            while not self.try_acquire():
                if stop_event is not None and stop_event.is_set():
                    return False
                logger.debug(f"All {self.capacity} slots busy, waiting up to {self.poll_interval}s")
                self._condition.wait(self.poll_interval)
            return True

    def release(self) -> None:
        """
        Return a slot to the pool.

        Raises:
            RuntimeError: If no slot is currently held
        """
        with self._condition:
            if self._occupied == 0:
                raise RuntimeError("SlotPool.release() called with no occupied slots")
            self._occupied -= 1
            self._condition.notify()
