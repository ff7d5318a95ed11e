# pyCGMWatch - Velocity and Vibration Alerts
# -*- coding: utf-8 -*-
"""
 Glucose velocity and vibration alerts

 Two alerts are evaluated every fetch cycle:

    Low soon - predictive. The weighted velocity of the last five readings
               is projected 20 minutes ahead; the alert fires when the
               projection falls below the low soon threshold.
    High     - reactive. Fires once glucose has stayed at or above the high
               threshold for the configured delay.

 Both alerts repeat at most once per repeat interval. Alert state is
 persisted so an app restart does not reset a delay timer or a cool-down.
 Only a reading below the high threshold resets the high delay timer, and
 nothing resets the last vibration times.
"""
import logging
import time
from typing import Optional, List

from pycgmwatch.models import Reading
from pycgmwatch.utils import load_json_file, save_json_file

log = logging.getLogger(__name__)

ALERTFILE = ".pycgmwatch.alerts"  # Stores vibration alert state

# Alert codes sent to the watch
ALERT_NONE = 0
ALERT_LOW_SOON = 1
ALERT_HIGH = 2

VELOCITY_READINGS = 5
VELOCITY_WEIGHTS = (0.29, 0.27, 0.23, 0.21)  # Newer spans weigh more
MAX_READING_GAP = 7 * 60  # Seconds allowed between consecutive readings
PREDICTION_INTERVALS = 4  # 4 x 5 minutes = 20 minute prediction


class AlertState:
    """Vibration debounce state, persisted as one JSON record"""

    FIELDS = ("high_condition_start_time", "last_high_vibe_time", "last_low_soon_vibe_time")

    def __init__(self, alertfile: Optional[str] = ALERTFILE):
        self.alertfile = alertfile
        self.high_condition_start_time: Optional[float] = None
        self.last_high_vibe_time: Optional[float] = None
        self.last_low_soon_vibe_time: Optional[float] = None

    def as_dict(self) -> dict:
        return {field: getattr(self, field) for field in self.FIELDS}

    def load(self) -> bool:
        if not self.alertfile:
            return False
        stored = load_json_file(self.alertfile)
        if stored is None:
            return False
        for field in self.FIELDS:
            value = stored.get(field)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                value = None
            setattr(self, field, float(value) if value is not None else None)
        log.debug("Vibe state loaded: highStart=%s, lastHigh=%s, lastLowSoon=%s" % (
            self.high_condition_start_time, self.last_high_vibe_time, self.last_low_soon_vibe_time))
        return True

    def save(self):
        if not self.alertfile:
            return
        try:
            save_json_file(self.alertfile, self.as_dict())
        except OSError as exc:
            log.error(f"Unable to save vibe state to {self.alertfile}: {exc}")


def calculate_velocity(readings: List[Reading]) -> Optional[float]:
    """
    Weighted average velocity of the most recent readings

    Returns mg/dL per 5 minutes, or None with fewer than five readings, a
    zero value, or a gap of more than 7 minutes between any of the first
    five readings.
    """
    if not readings or len(readings) < VELOCITY_READINGS:
        return None
    recent = readings[:VELOCITY_READINGS]
    for i, reading in enumerate(recent):
        if not reading or not reading.value:
            return None
        if i < VELOCITY_READINGS - 1:
            gap = reading.timestamp - recent[i + 1].timestamp  # most recent first
            if gap > MAX_READING_GAP:
                log.debug("Velocity calculation skipped: gap of %d min between readings %d and %d"
                          % (round(gap / 60.0), i, i + 1))
                return None

    bg0 = recent[0].value
    # Change over 5, 10, 15 and 20 minutes, each normalized to 5 minutes
    spans = [(bg0 - recent[n].value) / float(n) for n in range(1, VELOCITY_READINGS)]
    velocity = sum(w * v for w, v in zip(VELOCITY_WEIGHTS, spans))
    log.debug("Weighted average velocity: %.1f mg/dL per 5min" % velocity)
    return velocity


class AlertEngine:
    def __init__(self, settings, state: AlertState, clock=time.time):
        self.settings = settings
        self.state = state
        self.clock = clock

    def evaluate(self, readings: List[Reading]) -> int:
        """Run both alert checks for a reading set and return the alert code for the watch"""
        alert = ALERT_NONE
        if self.check_low_soon(readings):
            alert = ALERT_LOW_SOON
        # High alert wins if both fire in the same cycle
        if readings and self.check_high(readings[0].value):
            alert = ALERT_HIGH
        return alert

    def check_low_soon(self, readings: List[Reading]) -> bool:
        if not self.settings.vibe_low_soon_enabled:
            return False
        velocity = calculate_velocity(readings)
        if velocity is None:
            log.debug("Low soon alert: insufficient data for velocity calculation")
            return False

        current = readings[0].value
        predicted = current + velocity * PREDICTION_INTERVALS
        if predicted >= self.settings.vibe_low_soon_threshold:
            # lastLowSoon is kept so a brief recovery does not re-arm the alert
            return False

        now = self.clock()
        last = self.state.last_low_soon_vibe_time
        if last is not None and (now - last) / 60.0 < self.settings.vibe_low_soon_repeat_minutes:
            return False
        log.info("Triggering low soon alert vibration (current: %d, predicted: %d in 20min)"
                 % (current, round(predicted)))
        self.state.last_low_soon_vibe_time = now
        self.state.save()
        return True

    def check_high(self, value: int) -> bool:
        if not self.settings.vibe_enabled:
            return False
        state = self.state
        now = self.clock()

        if value < self.settings.vibe_high_threshold:
            # Restart the delay timer on the next excursion but keep the cool-down
            if state.high_condition_start_time is not None:
                state.high_condition_start_time = None
                state.save()
            return False

        if state.high_condition_start_time is None:
            state.high_condition_start_time = now
            state.save()
        if (now - state.high_condition_start_time) / 60.0 < self.settings.vibe_delay_minutes:
            return False
        last = state.last_high_vibe_time
        if last is not None and (now - last) / 60.0 < self.settings.vibe_repeat_minutes:
            return False
        log.info("Triggering high alert vibration (value: %d)" % value)
        state.last_high_vibe_time = now
        state.save()
        return True
