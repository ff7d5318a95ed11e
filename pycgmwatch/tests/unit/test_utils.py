from pycgmwatch.models import Reading, parse_readings, parse_trend, TREND_FLAT, TREND_NONE, TREND_DOUBLE_DOWN
from pycgmwatch.utils import (parse_dexcom_timestamp, format_glucose, format_delta, mgdl_to_mmol,
                              minutes_ago, round_half_up)


def test_parse_dexcom_timestamp():
    assert parse_dexcom_timestamp("/Date(1700000000000)/") == 1700000000.0
    assert parse_dexcom_timestamp("Date(1700000000500)") == 1700000000.5


def test_parse_dexcom_timestamp_with_offset():
    assert parse_dexcom_timestamp("/Date(1700000000000-0400)/") == 1700000000.0


def test_parse_dexcom_timestamp_invalid():
    assert parse_dexcom_timestamp("2023-11-14T22:13:20") is None
    assert parse_dexcom_timestamp(None) is None
    assert parse_dexcom_timestamp(1700000000000) is None


def test_format_glucose_limits():
    assert format_glucose(39) == "LOW"
    assert format_glucose(40) == "40"
    assert format_glucose(400) == "400"
    assert format_glucose(401) == "HIGH"


def test_format_glucose_mmol():
    assert mgdl_to_mmol(180) == "10.0"
    assert format_glucose(100, "mmol") == "5.5"
    assert format_glucose(30, "mmol") == "LOW"


def test_format_delta():
    assert format_delta(0) == "+0"
    assert format_delta(4.5) == "+5"
    assert format_delta(-15) == "-15"
    assert format_delta(-2.5) == "-2"
    assert format_delta(9, "mmol") == "+0.5"
    assert format_delta(-18.0182, "mmol") == "-1.0"


def test_round_half_up_and_minutes_ago():
    assert round_half_up(2.5) == 3
    assert round_half_up(-0.5) == 0
    assert minutes_ago(1000.0, 1000.0 + 150) == 3
    assert minutes_ago(1000.0, 1000.0 + 89) == 1


def test_parse_trend():
    assert parse_trend("Flat") == TREND_FLAT
    assert parse_trend("NOT COMPUTABLE") == TREND_NONE
    assert parse_trend("RATE OUT OF RANGE") == TREND_NONE
    assert parse_trend("Sideways") == TREND_NONE
    assert parse_trend(7) == TREND_DOUBLE_DOWN
    assert parse_trend(8) == TREND_NONE
    assert parse_trend(None) == TREND_NONE


def test_reading_from_dexcom():
    reading = Reading.from_dexcom({"Value": 120, "WT": "Date(1700000000000)", "Trend": "Flat"})
    assert reading == Reading(120, 1700000000.0, TREND_FLAT)
    assert Reading.from_dexcom({"Value": 120, "WT": "bogus"}) is None
    assert Reading.from_dexcom({"WT": "Date(1700000000000)"}) is None


def test_reading_dexcom_record_reparses():
    reading = Reading(95, 1700000000.0, TREND_FLAT)
    assert Reading.from_dexcom(reading.to_dexcom()) == reading


def test_parse_readings_orders_most_recent_first():
    payload = [
        {"Value": 100, "WT": "Date(1700000000000)", "Trend": "Flat"},
        {"Value": 110, "WT": "Date(1700000300000)", "Trend": 3},
        {"Value": 0, "WT": "garbage"},
    ]
    readings = parse_readings(payload)
    assert [r.value for r in readings] == [110, 100]
    assert readings[0].trend == 3
