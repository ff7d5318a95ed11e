# pyCGMWatch - Timestamp, Unit and File Helpers
# -*- coding: utf-8 -*-
"""
 Pure helper functions shared by the pyCGMWatch engine

 Functions
    parse_dexcom_timestamp(value)   # "/Date(1700000000000)/" -> epoch seconds (float) or None
    round_half_up(value)            # Round like the watch does (0.5 rounds up)
    mgdl_to_mmol(mgdl)              # Convert mg/dL to a one decimal mmol/L string
    format_glucose(mgdl, unit)      # "LOW", "HIGH" or the value in the selected unit
    format_delta(delta, unit)       # Signed delta string in the selected unit
    minutes_ago(timestamp, now)     # Whole minutes elapsed since timestamp
    local_time(timestamp)           # Human readable local time for a timestamp
    load_json_file(path)            # Read a JSON record or None
    save_json_file(path, data)      # Write a JSON record as a whole
"""
import json
import logging
import math
import os
import re
from datetime import datetime
from typing import Optional, Union

from dateutil import tz

log = logging.getLogger(__name__)

MMOL_FACTOR = 18.0182
GLUCOSE_LOW_LIMIT = 40    # Sensor reports below this as LOW
GLUCOSE_HIGH_LIMIT = 400  # Sensor reports above this as HIGH

DEXCOM_DATE_REGEX = re.compile(r"Date\((\d+)")


def parse_dexcom_timestamp(value) -> Optional[float]:
    """
    Parse a Dexcom Share timestamp

    Format: "/Date(1234567890000)/" (epoch milliseconds), optionally with a
    timezone suffix such as "/Date(1234567890000-0400)/" which is ignored
    since the millisecond value is already UTC.
    """
    if not isinstance(value, str):
        return None
    match = DEXCOM_DATE_REGEX.search(value)
    if not match:
        return None
    return int(match.group(1)) / 1000.0


def format_dexcom_timestamp(timestamp: float) -> str:
    return "/Date(%d)/" % round(timestamp * 1000)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def mgdl_to_mmol(mgdl: Union[int, float]) -> str:
    return "%.1f" % (mgdl / MMOL_FACTOR)


def format_glucose(mgdl: int, unit: str = "mgdl") -> str:
    if mgdl < GLUCOSE_LOW_LIMIT:
        return "LOW"
    if mgdl > GLUCOSE_HIGH_LIMIT:
        return "HIGH"
    if unit == "mmol":
        return mgdl_to_mmol(mgdl)
    return str(mgdl)


def format_delta(delta_mgdl: float, unit: str = "mgdl") -> str:
    if unit == "mmol":
        formatted = mgdl_to_mmol(delta_mgdl)
    else:
        formatted = str(round_half_up(delta_mgdl))
    if delta_mgdl >= 0:
        return "+" + formatted
    return formatted


def minutes_ago(timestamp: float, now: float) -> int:
    return round_half_up((now - timestamp) / 60.0)


def local_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=tz.tzlocal()).strftime("%Y-%m-%d %H:%M:%S %Z")


def load_json_file(path: str) -> Optional[dict]:
    if not os.path.isfile(path):
        log.debug(f"No stored record at {path}")
        return None
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        log.error(f"Unable to read {path} - ignoring: {exc}")
        return None
    if not isinstance(data, dict):
        log.error(f"Unexpected content in {path} - ignoring")
        return None
    return data


def save_json_file(path: str, data: dict):
    # Write the full record to a side file and swap it in so readers never see a partial write
    tmpfile = path + ".tmp"
    with open(tmpfile, "w") as f:
        json.dump(data, f, indent=4)
    os.replace(tmpfile, path)
