"""Request pacing for third-party lookup APIs"""
import time
import logging
from threading import Lock
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RequestPacer:
    """Minimum-interval gate shared by every caller of one external API.

    Holds the timestamp of the last paced call. Resolvers that must honor the
    same request-volume policy share one instance; independent instances pace
    independently.
    """

    def __init__(self, min_interval: float,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Args:
            min_interval: Seconds required between two paced calls
            clock: Monotonic time source
            sleep: Blocking wait used when the gate is closed
        """
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self.last_call: Optional[float] = None
        self.total_wait = 0.0
        self._lock = Lock()

    def wait(self) -> float:
        """
        Block until the minimum interval since the previous call has elapsed,
        then record this call. Returns the time waited in seconds.

        Callers on other threads queue on the gate; the sleep happens while
        holding it so each caller measures from the previous caller's slot.
        """
        with self._lock:
            waited = 0.0
            if self.last_call is not None:
                remaining = self.last_call + self.min_interval - self._clock()
                if remaining > 0:
                    logger.debug(f"Pacing external lookups, waiting {remaining:.2f}s")
                    self._sleep(remaining)
                    waited = remaining
            self.last_call = self._clock()
            self.total_wait += waited
            return waited


def batched(items: Sequence[T], batch_size: int) -> Iterator[List[T]]:
    """Split items into consecutive batches of at most batch_size"""
    size = max(1, int(batch_size))
    for i in range(0, len(items), size):
        yield list(items[i:i + size])
