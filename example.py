# Example: pyCGMWatch Usage Demo
# -------------------------------
# This script shows how to run the pyCGMWatch engine with a simple console
# "watch" that prints every update it receives.
#
# Usage:
#   - Enter your Dexcom Share credentials below, or use a .env file with:
#       CGM_ACCOUNT_NAME, CGM_PASSWORD, CGM_SERVER (us or international), CGM_UNIT (mgdl or mmol)
#   - Run: python example.py

import os
import time

import dotenv

import pycgmwatch

# Load environment variables from .env file if present
dotenv.load_dotenv()

# Enable debug logging for more verbose output (optional for learning)
# pycgmwatch.set_debug(True)

settings = {
    "account_name": os.getenv("CGM_ACCOUNT_NAME", "username"),
    "password": os.getenv("CGM_PASSWORD", "password"),
    "server": os.getenv("CGM_SERVER", "us"),
    "unit": os.getenv("CGM_UNIT", "mgdl"),
    "vibe_low_soon_enabled": True,
    "vibe_enabled": True,
}

ALERTS = {pycgmwatch.ALERT_LOW_SOON: "LOW SOON", pycgmwatch.ALERT_HIGH: "HIGH"}


def watch(record):
    # Stand-in for the watch: show the record as the watch face would
    if record.needs_setup:
        print("Setup required - enter Dexcom Share credentials")
    elif record.sync_error:
        print(f"Sync error: {record.error}")
    else:
        print(f"{record.display_value} {record.display_delta} ({record.minutes_ago} min ago) "
              f"{ALERTS.get(record.alert, '')}")
    return True


cgm = pycgmwatch.CGMWatch(sender=watch)
cgm.update_settings(settings)

# Simulate the watch asking for fresh data every minute
try:
    while True:
        time.sleep(60)
        cgm.handle_app_message({pycgmwatch.KEY_REQUEST_DATA: 1})
except KeyboardInterrupt:
    cgm.stop()
