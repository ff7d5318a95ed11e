# pyCGMWatch - Dexcom Share Client
# -*- coding: utf-8 -*-
"""
 Dexcom Share Client

 Logs in to the Dexcom Share service with the follower's publisher
 credentials and reads the latest glucose values. The service hands out an
 opaque session id with no advertised expiry, so the client holds on to it
 until a fetch using it fails.

 Class:
    DexcomShare(account_name, password, server, timeout)

 Functions:
    login()            - create a new session, returns the session id
    fetch_readings()   - return the latest readings, most recent first
    close_session()    - forget the current session and close the http connections
"""
import logging
from typing import List, Optional

import requests

from pycgmwatch.exceptions import AuthError, DataError, HttpError, NetworkError, NotAuthenticated, SetupRequired
from pycgmwatch.models import Reading, parse_readings

log = logging.getLogger(__name__)

# Dexcom Share API endpoints
DEXCOM_URLS = {
    "us": "https://share1.dexcom.com",
    "international": "https://shareous1.dexcom.com",
}
LOGIN_API = "/ShareWebServices/Services/General/LoginPublisherAccountByName"
READINGS_API = "/ShareWebServices/Services/Publisher/ReadPublisherLatestGlucoseValues"

# Dexcom application ID (same as official Dexcom app uses)
DEXCOM_APP_ID = "d89443d2-327c-4a6f-89e5-496bbb0317db"
DEXCOM_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": "Dexcom Share/3.0.2.11 CFNetwork/711.2.23 Darwin/14.0.0",
}
# Dexcom returns this id instead of an error for some rejected logins
NULL_SESSION_ID = "00000000-0000-0000-0000-000000000000"

HTTP_TIMEOUT = 30       # Seconds to wait for Dexcom Share
LOOKBACK_MINUTES = 1440
MAX_COUNT = 24          # 24 readings = 120 minutes of data


class DexcomShare:
    def __init__(self, account_name: str = "", password: str = "", server: str = "us",
                 timeout: int = HTTP_TIMEOUT):
        self.account_name = account_name
        self.password = password
        self.server = server
        self.timeout = timeout
        self.session_id: Optional[str] = None
        self.session = requests.Session()  # http connection re-use

    @property
    def base_url(self) -> str:
        return DEXCOM_URLS.get(self.server) or DEXCOM_URLS["us"]

    def _post(self, api: str, payload: Optional[dict] = None, params: Optional[dict] = None):
        url = self.base_url + api
        try:
            r = self.session.post(url, json=payload, params=params, headers=DEXCOM_HEADERS,
                                  timeout=self.timeout)
        except requests.exceptions.Timeout:
            log.debug('ERROR Timeout waiting for Dexcom Share at %s' % url)
            raise NetworkError("Request timeout")
        except requests.exceptions.ConnectionError as exc:
            log.debug('ERROR Unable to connect to Dexcom Share at %s' % url)
            raise NetworkError(f"Network error: {exc}")
        except requests.exceptions.RequestException as exc:
            log.debug(f'ERROR Unknown error connecting to Dexcom Share at {url}: {exc}')
            raise NetworkError(f"Network error: {exc}")
        if not 200 <= r.status_code < 300:
            log.debug('Dexcom Share returned %s at %s: %s' % (r.status_code, url, r.text))
            raise HttpError(r.status_code, r.reason or "")
        return r

    def login(self) -> str:
        """Authenticate with Dexcom Share and hold on to the new session id"""
        if not self.account_name or not self.password:
            raise SetupRequired("No Dexcom Share credentials")
        log.debug("Logging in to Dexcom Share (%s)..." % self.server)
        r = self._post(LOGIN_API, {
            "accountName": self.account_name,
            "password": self.password,
            "applicationId": DEXCOM_APP_ID,
        })
        # The body is the session id, usually as a quoted JSON string
        session_id = r.text.strip().replace('"', '')
        if not session_id or session_id == NULL_SESSION_ID:
            self.session_id = None
            raise AuthError("Invalid Dexcom Share login")
        self.session_id = session_id
        log.debug(f"Login successful, session: {session_id[:8]}...")
        return session_id

    def fetch_readings(self) -> List[Reading]:
        """Fetch the latest glucose readings, most recent first"""
        if not self.session_id:
            raise NotAuthenticated("Not logged in")
        log.debug("Fetching glucose readings...")
        params = {
            "sessionID": self.session_id,
            "minutes": LOOKBACK_MINUTES,
            "maxCount": MAX_COUNT,
        }
        try:
            r = self._post(READINGS_API, params=params)
            try:
                payload = r.json()
            except ValueError as exc:
                raise DataError(f"Unable to parse readings: {exc}")
            if not isinstance(payload, list):
                raise DataError(f"Unexpected readings payload: {payload!r}")
        except Exception:
            # The session is suspect after any failure - force a new login next time
            self.session_id = None
            raise
        return parse_readings(payload)

    def close_session(self):
        self.session_id = None
        self.session.close()
