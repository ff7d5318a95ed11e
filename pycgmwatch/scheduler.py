import logging
import math
import threading
import time
from typing import Optional

log = logging.getLogger(__name__)

READING_INTERVAL = 5 * 60  # Dexcom posts a reading every 5 minutes
POLL_GRACE = 30            # Give Dexcom time to publish the reading
POLL_INTERVAL = READING_INTERVAL + POLL_GRACE
BOOTSTRAP_DELAY = 30       # Poll delay until a first good reading is seen
MIN_DELAY = 10
MAX_DELAY = 6 * 60


class PollScheduler:
    """
    Schedules the next fetch just after Dexcom is expected to publish a reading

    Polls land 5m30s after the last good reading (or a multiple of that if
    the app was asleep). Only one fetch is ever pending.
    """

    def __init__(self, callback, clock=time.time, timer_factory=threading.Timer):
        self.callback = callback
        self.clock = clock
        self.timer_factory = timer_factory
        self.last_good_reading_time: Optional[float] = None
        self.timer = None
        self._lock = threading.Lock()  # guards the pending timer swap

    def observe(self, reading_time: float):
        """Record the timestamp of a successfully processed reading"""
        if self.last_good_reading_time is None or reading_time > self.last_good_reading_time:
            self.last_good_reading_time = reading_time

    def compute_delay(self, now: Optional[float] = None) -> float:
        if self.last_good_reading_time is None:
            return BOOTSTRAP_DELAY
        if now is None:
            now = self.clock()
        next_poll = self.last_good_reading_time + POLL_INTERVAL
        if next_poll <= now:
            # Skip ahead past the cycles we slept through
            next_poll += (math.floor((now - next_poll) / POLL_INTERVAL) + 1) * POLL_INTERVAL
        return min(max(next_poll - now, MIN_DELAY), MAX_DELAY)

    def schedule_next(self) -> float:
        delay = self.compute_delay()
        if self.last_good_reading_time is None:
            log.info("No reading yet, polling in %ds" % delay)
        else:
            log.info("Next poll in %ds" % round(delay))
        timer = self.timer_factory(delay, self.callback)
        timer.daemon = True
        with self._lock:
            # Timer callbacks run on their own thread, swap and cancel in one step
            previous, self.timer = self.timer, timer
            if previous is not None:
                previous.cancel()
            timer.start()
        return delay

    def cancel(self):
        with self._lock:
            if self.timer is not None:
                self.timer.cancel()
                self.timer = None

    @property
    def pending(self) -> bool:
        return self.timer is not None
