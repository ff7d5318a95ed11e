# pyCGMWatch Module - Command Line
# -*- coding: utf-8 -*-
"""
 Python module to keep a watch display of Dexcom CGM data fresh

 Command Line Functions:
    python -m pycgmwatch setup -account NAME -password PASS [-server us|international] [-unit mgdl|mmol]
    python -m pycgmwatch get [-format text|json|csv]
    python -m pycgmwatch run
    python -m pycgmwatch version

 Settings may also come from CGM_<SETTING> environment variables or a .env file.
"""

import argparse
import json
import os
import sys
import time

import dotenv

# Modules
from pycgmwatch import version, set_debug, CGMWatch
from pycgmwatch.settings import Settings, SETTINGSFILE
from pycgmwatch.utils import local_time

# Load environment variables from .env file if present
dotenv.load_dotenv()

# Global Variables
authpath = os.getenv("CGM_AUTH_PATH", "")
debug = os.getenv("CGM_DEBUG", "no").lower() in ("yes", "true", "1")

# Setup parser and groups
p = argparse.ArgumentParser(prog="pyCGMWatch", description=f"pyCGMWatch Module v{version}")
subparsers = p.add_subparsers(dest="command", title='commands (run <command> -h to see usage information)',
                              required=True)

setup_args = subparsers.add_parser("setup", help='Save Dexcom Share credentials and display settings')
setup_args.add_argument("-account", type=str, default=None, help="Dexcom Share username.")
setup_args.add_argument("-password", type=str, default=None, help="Dexcom Share password.")
setup_args.add_argument("-server", type=str, default=None, help="Server region: us or international")
setup_args.add_argument("-unit", type=str, default=None, help="Glucose units: mgdl or mmol")

get_args = subparsers.add_parser("get", help='Fetch the latest reading once')
get_args.add_argument("-format", type=str, default="text", help="Output format: text, json, csv")

run_args = subparsers.add_parser("run", help='Poll Dexcom Share and print every update until Ctrl-C')

version_args = subparsers.add_parser("version", help='Print version information')

# Global flags
p.add_argument("-debug", action="store_true", default=debug, help="Enable debug output")
p.add_argument("-authpath", type=str, default=authpath,
               help="Path to settings, alert state and cache files [Default=current directory]")

if len(sys.argv) == 1:
    p.print_help(sys.stderr)
    sys.exit(1)

# parse args
args = p.parse_args()
command = args.command
authpath = os.path.expanduser(args.authpath)

# Set Debug Mode
if args.debug:
    set_debug(True)


def load_settings():
    settings = Settings(os.path.join(authpath, SETTINGSFILE))
    settings.load()
    settings.load_env()
    return settings


def print_record(record):
    if record.is_error:
        print(f"[{time.strftime('%H:%M:%S')}] {record.error}")
        return True
    alert = {0: "", 1: "  ** LOW SOON **", 2: "  ** HIGH **"}.get(record.alert, "")
    print(f"[{time.strftime('%H:%M:%S')}] {record.display_value} {record.display_delta} "
          f"({record.minutes_ago} min ago){alert}")
    return True


# Save Settings
if command == 'setup':
    print("pyCGMWatch [%s] - Setup\n" % version)
    settings = load_settings()
    values = {
        'account_name': args.account,
        'password': args.password,
        'server': args.server,
        'unit': args.unit,
    }
    if args.server and args.server not in ['us', 'international']:
        print("ERROR: Invalid server [%s] - must be us or international" % args.server)
        sys.exit(1)
    if args.unit and args.unit not in ['mgdl', 'mmol']:
        print("ERROR: Invalid unit [%s] - must be mgdl or mmol" % args.unit)
        sys.exit(1)
    settings.update(values)
    settings.save()
    if not settings.has_credentials():
        print("WARNING: Username or password is still missing.")
    print(f"Setup Complete. Settings file {settings.settingsfile} ready to use.")

# Fetch Once
elif command == 'get':
    cgm = CGMWatch(authpath=authpath, settings=load_settings())
    record = cgm.fetch_data()
    cgm.stop()
    if record.needs_setup:
        print("ERROR: No Dexcom Share credentials. Run 'setup' or set CGM_ACCOUNT_NAME and CGM_PASSWORD.")
        sys.exit(1)
    if record.is_error:
        print(f"ERROR: Unable to fetch readings ({record.error})")
        sys.exit(1)
    output = {
        'value': record.display_value,
        'delta': record.display_delta,
        'trend': record.trend,
        'minutes_ago': record.minutes_ago,
        'alert': record.alert,
        'reading_time': local_time(cgm.scheduler.last_good_reading_time),
        'readings': len(record.history),
    }
    if args.format == 'json':
        print(json.dumps(output, indent=2))
    elif args.format == 'csv':
        # create a csv header from keys
        print(",".join(output.keys()))
        print(",".join(str(value) for value in output.values()))
    else:
        print(f"pyCGMWatch [{version}] - Latest Reading\n")
        for item in output:
            name = item.replace("_", " ").title()
            print("  {:<18}{}".format(name, output[item]))
        print("")

# Poll Forever
elif command == 'run':
    print("pyCGMWatch [%s] - Polling Dexcom Share (Ctrl-C to stop)\n" % version)
    cgm = CGMWatch(authpath=authpath, sender=print_record, settings=load_settings())
    if cgm.start().needs_setup:
        print("ERROR: No Dexcom Share credentials. Run 'setup' or set CGM_ACCOUNT_NAME and CGM_PASSWORD.")
        sys.exit(1)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        cgm.stop()
        print("\nStopped.")

# Print Version
elif command == 'version':
    print("pyCGMWatch [%s]" % version)
# Print Usage
else:
    p.print_help()
