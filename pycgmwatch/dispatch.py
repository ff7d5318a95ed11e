import logging
from typing import List, Tuple, Optional

from pycgmwatch.alerts import ALERT_NONE
from pycgmwatch.models import Reading, TREND_NONE
from pycgmwatch.utils import format_glucose, format_delta, minutes_ago

log = logging.getLogger(__name__)

# AppMessage keys (must match the watch app)
KEY_CGM_VALUE = 0
KEY_CGM_DELTA = 1
KEY_CGM_TREND = 2
KEY_CGM_TIME_AGO = 3
KEY_CGM_HISTORY = 4
KEY_CGM_ALERT = 5
KEY_REQUEST_DATA = 6
KEY_LOW_THRESHOLD = 7
KEY_HIGH_THRESHOLD = 8
KEY_NEEDS_SETUP = 9
KEY_REVERSED = 10
KEY_SYNC_ERROR = 11


class ResultRecord:
    """Flat record handed to the display surface after every fetch cycle"""

    def __init__(self, display_value="", display_delta="", trend=TREND_NONE, minutes_ago=0,
                 history: Optional[List[Tuple[int, int]]] = None, alert=ALERT_NONE,
                 low_threshold=70, high_threshold=180, reversed=False,
                 needs_setup=False, sync_error=False, error=None):
        self.display_value = display_value
        self.display_delta = display_delta
        self.trend = trend
        self.minutes_ago = minutes_ago
        self.history = history or []
        self.alert = alert
        self.low_threshold = low_threshold
        self.high_threshold = high_threshold
        self.reversed = reversed
        self.needs_setup = needs_setup
        self.sync_error = sync_error
        self.error = error

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def history_string(self) -> str:
        # Format: "120:0,125:5,130:10" (value:minutesAgo, most recent first)
        return ",".join("%d:%d" % (value, ago) for value, ago in self.history)

    def to_app_message(self) -> dict:
        message = {
            KEY_CGM_VALUE: self.display_value,
            KEY_CGM_DELTA: self.display_delta,
            KEY_CGM_TREND: self.trend,
            KEY_CGM_TIME_AGO: self.minutes_ago,
            KEY_NEEDS_SETUP: 1 if self.needs_setup else 0,
            KEY_SYNC_ERROR: 1 if self.sync_error else 0,
        }
        if self.is_error:
            # The watch keeps its last history and thresholds on errors
            return message
        message.update({
            KEY_CGM_HISTORY: self.history_string(),
            KEY_CGM_ALERT: self.alert,
            KEY_LOW_THRESHOLD: self.low_threshold,
            KEY_HIGH_THRESHOLD: self.high_threshold,
            KEY_REVERSED: 1 if self.reversed else 0,
        })
        return message

    def __repr__(self):
        if self.is_error:
            return f"ResultRecord(error={self.error!r}, needs_setup={self.needs_setup})"
        return (f"ResultRecord(value={self.display_value!r}, delta={self.display_delta!r}, "
                f"trend={self.trend}, ago={self.minutes_ago}, alert={self.alert}, "
                f"history={len(self.history)} points)")


def calculate_delta(readings: List[Reading]) -> float:
    """Difference between the two most recent readings, normalized to 5 minutes"""
    if len(readings) < 2:
        return 0.0
    latest, previous = readings[0], readings[1]
    gap_minutes = (latest.timestamp - previous.timestamp) / 60.0
    if gap_minutes <= 0:
        return 0.0
    return (latest.value - previous.value) / gap_minutes * 5


def build_result(readings: List[Reading], settings, alert: int, now: float) -> ResultRecord:
    latest = readings[0]
    return ResultRecord(
        display_value=format_glucose(latest.value, settings.unit),
        display_delta=format_delta(calculate_delta(readings), settings.unit),
        trend=latest.trend,
        minutes_ago=minutes_ago(latest.timestamp, now),
        history=[(r.value, minutes_ago(r.timestamp, now)) for r in readings],
        alert=alert,
        low_threshold=settings.low_threshold,
        high_threshold=settings.high_threshold,
        reversed=settings.reversed,
    )


def build_error(error: str, needs_setup: bool = False, settings=None) -> ResultRecord:
    record = ResultRecord(needs_setup=needs_setup, sync_error=not needs_setup, error=error)
    if settings is not None:
        record.low_threshold = settings.low_threshold
        record.high_threshold = settings.high_threshold
        record.reversed = settings.reversed
    return record


def send_record(sender, record: ResultRecord) -> bool:
    """Hand a record to the display surface, logging (and otherwise ignoring) failures"""
    if sender is None:
        log.debug(f"No sender configured - dropping {record!r}")
        return False
    try:
        ok = sender(record)
    except Exception as exc:
        log.error(f"Error sending data: {exc}")
        return False
    if ok is False:
        log.error(f"Error sending data: {record!r}")
        return False
    if record.is_error:
        log.debug(f"Error sent to watch: {record.error}")
    else:
        log.debug("Data sent to watch")
    return True
