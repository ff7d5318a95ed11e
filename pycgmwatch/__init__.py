# pyCGMWatch Module
# -*- coding: utf-8 -*-
"""
 Python module to keep a watch display of Dexcom CGM data fresh

 For more information see README.md

 Features
    * Reads glucose values from Dexcom Share (US or international servers)
    * Polls 5m30s after the last reading to line up with the Dexcom cadence
    * Will cache the session to avoid a login per fetch, re-login once on failure
    * Will cache readings until they are 5 minutes old to avoid redundant calls
    * Predictive "low soon" and delayed "high" vibration alerts with repeat
      intervals that survive restarts

 Classes
    CGMWatch(authpath, sender, settings, clock, timer_factory, timeout)

 Parameters
    authpath = ""             # Path to settings, alert state and cache files (default current directory)
    sender = None             # Callable taking a ResultRecord, returns False on failure
    settings = None           # Settings instance (default loaded from authpath)
    clock = time.time         # Source of the current time in epoch seconds
    timer_factory = threading.Timer  # Creates the poll timer
    timeout = 30              # Timeout for HTTPS calls in seconds

 Functions
    start()                   # Load state and run the first fetch cycle
    fetch_data()              # Run one fetch cycle, returns the ResultRecord sent
    request_data()            # Watch asked for an update
    handle_app_message(payload)  # Inbound AppMessage dict from the watch
    update_settings(values)   # Replace settings from the configuration page
    stop()                    # Cancel the pending poll and close the Dexcom session

 Requirements
    This module requires the following modules: requests, python-dateutil
    pip install requests python-dateutil
"""
import logging
import os
import sys
import threading
import time
from typing import Optional, List

version_tuple = (0, 1, 0)
version = __version__ = '%d.%d.%d' % version_tuple
__author__ = 'pycgmwatch'

from pycgmwatch.alerts import AlertEngine, AlertState, ALERTFILE, calculate_velocity
from pycgmwatch.alerts import ALERT_NONE, ALERT_LOW_SOON, ALERT_HIGH
from pycgmwatch.cache import ReadingCache, CACHEFILE
from pycgmwatch.dexcom import DexcomShare, HTTP_TIMEOUT
from pycgmwatch.dispatch import ResultRecord, build_result, build_error, send_record, KEY_REQUEST_DATA
from pycgmwatch.exceptions import (PyCGMWatchException, SetupRequired, AuthError, NotAuthenticated,
                                   NetworkError, HttpError, DataError)
from pycgmwatch.models import Reading
from pycgmwatch.scheduler import PollScheduler
from pycgmwatch.settings import Settings, SETTINGSFILE

log = logging.getLogger(__name__)
log.debug('%s version %s', __name__, __version__)
log.debug('Python %s on %s', sys.version, sys.platform)

# Error texts shown in the logs for each failure class
ERROR_SETUP = "Setup"
ERROR_AUTH = "Auth err"
ERROR_NETWORK = "Net err"
ERROR_DATA = "Data err"
ERROR_NO_DATA = "No data"


def set_debug(toggle=True, color=True):
    """Enable verbose logging"""
    if toggle:
        if color:
            logging.basicConfig(format='\x1b[31;1m%(levelname)s:%(message)s\x1b[0m', level=logging.DEBUG)
        else:
            logging.basicConfig(format='%(levelname)s:%(message)s', level=logging.DEBUG)
        log.setLevel(logging.DEBUG)
        log.debug("%s [%s]\n" % (__name__, __version__))
    else:
        log.setLevel(logging.NOTSET)


class CGMWatch(object):
    def __init__(self, authpath="", sender=None, settings: Optional[Settings] = None,
                 clock=time.time, timer_factory=threading.Timer, timeout=HTTP_TIMEOUT):
        """
        Engine that keeps the watch supplied with Dexcom readings and alerts.

        Args:
            authpath      = Path to settings, alert state and cache files (default current directory)
            sender        = Callable that delivers a ResultRecord to the watch
            settings      = Settings to use instead of the stored ones
            clock         = Returns the current time in epoch seconds
            timer_factory = Creates the poll timer (threading.Timer signature)
            timeout       = Seconds for the timeout on http requests
        """
        self.authpath = os.path.expanduser(authpath)
        if self.authpath:
            os.makedirs(self.authpath, exist_ok=True)
        self.sender = sender
        self.clock = clock
        self.timeout = timeout
        if settings is None:
            settings = Settings(os.path.join(self.authpath, SETTINGSFILE))
            settings.load()
        self.settings = settings
        self.alert_state = AlertState(os.path.join(self.authpath, ALERTFILE))
        self.alert_state.load()
        self.cache = ReadingCache(os.path.join(self.authpath, CACHEFILE), clock=clock)
        self.alerts = AlertEngine(self.settings, self.alert_state, clock=clock)
        self.scheduler = PollScheduler(self.fetch_data, clock=clock, timer_factory=timer_factory)
        self.client = self._new_client()

    def _new_client(self) -> DexcomShare:
        return DexcomShare(self.settings.account_name, self.settings.password,
                           self.settings.server, timeout=self.timeout)

    def start(self) -> ResultRecord:
        log.info("pyCGMWatch [%s] ready" % __version__)
        return self.fetch_data()

    def stop(self):
        self.scheduler.cancel()
        self.client.close_session()

    def request_data(self) -> ResultRecord:
        log.debug("Watch requested data update")
        return self.fetch_data()

    def handle_app_message(self, payload: dict) -> Optional[ResultRecord]:
        if payload and payload.get(KEY_REQUEST_DATA):
            return self.request_data()
        return None

    def update_settings(self, values: dict) -> ResultRecord:
        """Apply settings from the configuration page, save them and refetch"""
        account = (self.settings.account_name, self.settings.server)
        self.settings.update(values)
        self.settings.save()
        if account != (self.settings.account_name, self.settings.server):
            # Readings of another account must not be served
            self.cache.clear()
        # Reset session on credential change
        self.client.close_session()
        self.client = self._new_client()
        return self.fetch_data()

    def fetch_data(self) -> ResultRecord:
        """
        Run one fetch cycle and send the result to the watch.

        Credentials check, then cache, then the held session (with a single
        re-login), then a fresh login. Errors never escape: they are sent to
        the watch as an error record.
        """
        self.scheduler.cancel()
        if not self.settings.has_credentials():
            log.info("No credentials configured")
            return self._dispatch(build_error(ERROR_SETUP, needs_setup=True, settings=self.settings))

        readings = self.cache.get()
        from_cache = readings is not None
        if not from_cache:
            try:
                readings = self._fetch_readings(retries=1)
            except PyCGMWatchException as exc:
                error = self._classify(exc)
                log.warning(f"Fetch failed ({error}): {exc}")
                record = self._dispatch(build_error(error, needs_setup=isinstance(exc, SetupRequired),
                                                    settings=self.settings))
                self.scheduler.schedule_next()
                return record
            self.cache.put(readings)

        record = self.process_readings(readings, from_cache)
        self.scheduler.schedule_next()
        return record

    def _fetch_readings(self, retries: int = 1) -> List[Reading]:
        """Fetch with the held session and log in again once (if `retries` allows) when it is rejected"""
        if self.client.session_id:
            try:
                return self.client.fetch_readings()
            except PyCGMWatchException as exc:
                if retries < 1:
                    raise AuthError(f"Session rejected: {exc}") from exc
                log.info(f"Fetch failed, re-authenticating: {exc}")
                try:
                    self.client.login()
                    return self.client.fetch_readings()
                except PyCGMWatchException as err:
                    raise AuthError(f"Re-auth failed: {err}") from err
        self.client.login()
        return self.client.fetch_readings()

    @staticmethod
    def _classify(exc: Exception) -> str:
        if isinstance(exc, SetupRequired):
            return ERROR_SETUP
        if isinstance(exc, AuthError):
            return ERROR_AUTH
        if isinstance(exc, HttpError) and exc.is_auth_failure:
            return ERROR_AUTH
        if isinstance(exc, DataError):
            return ERROR_DATA
        return ERROR_NETWORK

    def process_readings(self, readings: List[Reading], from_cache: bool = False) -> ResultRecord:
        if not readings:
            log.info("No readings received")
            return self._dispatch(build_error(ERROR_NO_DATA, settings=self.settings))
        log.debug("Processing %d readings%s" % (len(readings), " (from cache)" if from_cache else ""))

        now = self.clock()
        latest = readings[0]
        self.scheduler.observe(latest.timestamp)
        alert = self.alerts.evaluate(readings)
        record = build_result(readings, self.settings, alert, now)
        log.info("Sending: value=%d (%s), delta=%s, trend=%d, ago=%dmin, alert=%d, history=%d points" % (
            latest.value, record.display_value, record.display_delta, record.trend,
            record.minutes_ago, alert, len(readings)))
        return self._dispatch(record)

    def _dispatch(self, record: ResultRecord) -> ResultRecord:
        send_record(self.sender, record)
        return record
