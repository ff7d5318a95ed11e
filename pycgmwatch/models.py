import logging
from typing import NamedTuple, Optional, List

from pycgmwatch.utils import parse_dexcom_timestamp, format_dexcom_timestamp

log = logging.getLogger(__name__)

# Trend direction mapping (Dexcom values)
TREND_NONE = 0
TREND_DOUBLE_UP = 1
TREND_SINGLE_UP = 2
TREND_FORTY_FIVE_UP = 3
TREND_FLAT = 4
TREND_FORTY_FIVE_DOWN = 5
TREND_SINGLE_DOWN = 6
TREND_DOUBLE_DOWN = 7

TREND_DIRECTIONS = {
    "None": TREND_NONE,
    "DoubleUp": TREND_DOUBLE_UP,
    "SingleUp": TREND_SINGLE_UP,
    "FortyFiveUp": TREND_FORTY_FIVE_UP,
    "Flat": TREND_FLAT,
    "FortyFiveDown": TREND_FORTY_FIVE_DOWN,
    "SingleDown": TREND_SINGLE_DOWN,
    "DoubleDown": TREND_DOUBLE_DOWN,
    "NOT COMPUTABLE": TREND_NONE,
    "RATE OUT OF RANGE": TREND_NONE,
}
TREND_NAMES = ["None", "DoubleUp", "SingleUp", "FortyFiveUp", "Flat",
               "FortyFiveDown", "SingleDown", "DoubleDown"]


def parse_trend(trend) -> int:
    """Map a Dexcom trend (name or raw number) to a trend code 0-7"""
    if isinstance(trend, bool):
        return TREND_NONE
    if isinstance(trend, int):
        return trend if 0 <= trend <= TREND_DOUBLE_DOWN else TREND_NONE
    if isinstance(trend, str):
        return TREND_DIRECTIONS.get(trend, TREND_NONE)
    return TREND_NONE


class Reading(NamedTuple):
    value: int        # mg/dL
    timestamp: float  # epoch seconds
    trend: int = TREND_NONE

    @classmethod
    def from_dexcom(cls, record: dict) -> Optional["Reading"]:
        """Build a Reading from a Dexcom Share record, None if it can not be parsed"""
        if not isinstance(record, dict):
            return None
        timestamp = parse_dexcom_timestamp(record.get("WT"))
        if timestamp is None:
            return None
        try:
            value = int(record.get("Value"))
        except (TypeError, ValueError):
            return None
        return cls(value, timestamp, parse_trend(record.get("Trend") or "None"))

    def to_dexcom(self) -> dict:
        return {
            "Value": self.value,
            "WT": format_dexcom_timestamp(self.timestamp),
            "Trend": TREND_NAMES[self.trend],
        }


def parse_readings(payload) -> List[Reading]:
    """
    Parse a Dexcom Share reading list into Readings, most recent first

    Records that can not be parsed are dropped.
    """
    readings = []
    for record in payload or []:
        reading = Reading.from_dexcom(record)
        if reading is None:
            log.debug(f"Skipping unparsable reading: {record!r}")
            continue
        readings.append(reading)
    readings.sort(key=lambda r: r.timestamp, reverse=True)
    return readings
