"""Tests for the Dexcom Share client with a mocked requests session."""
from unittest.mock import MagicMock

import pytest
import requests

from pycgmwatch.dexcom import DexcomShare, DEXCOM_APP_ID, DEXCOM_HEADERS, LOGIN_API, READINGS_API
from pycgmwatch.exceptions import (AuthError, DataError, HttpError, NetworkError, NotAuthenticated,
                                   SetupRequired)
from pycgmwatch.models import TREND_FLAT, TREND_NONE

SESSION_ID = "12345678-abcd-ef01-2345-6789abcdef01"


def response(status_code=200, text="", payload=None, reason="OK"):
    r = MagicMock()
    r.status_code = status_code
    r.reason = reason
    r.text = text
    if payload is None:
        r.json.side_effect = ValueError("No JSON")
    else:
        r.json.return_value = payload
    return r


@pytest.fixture
def client():
    c = DexcomShare("user", "secret", "us")
    c.session = MagicMock()
    return c


def test_login_request(client):
    client.session.post.return_value = response(text=f'"{SESSION_ID}"')
    assert client.login() == SESSION_ID
    assert client.session_id == SESSION_ID
    args, kwargs = client.session.post.call_args
    assert args[0] == "https://share1.dexcom.com" + LOGIN_API
    assert kwargs["json"] == {"accountName": "user", "password": "secret", "applicationId": DEXCOM_APP_ID}
    assert kwargs["headers"] == DEXCOM_HEADERS
    assert kwargs["headers"]["User-Agent"] == "Dexcom Share/3.0.2.11 CFNetwork/711.2.23 Darwin/14.0.0"
    assert kwargs["timeout"] == 30


def test_login_unquoted_token(client):
    client.session.post.return_value = response(text=SESSION_ID)
    assert client.login() == SESSION_ID


def test_international_server(client):
    client.server = "international"
    client.session.post.return_value = response(text=SESSION_ID)
    client.login()
    assert client.session.post.call_args[0][0].startswith("https://shareous1.dexcom.com/")


def test_unknown_server_falls_back_to_us():
    assert DexcomShare(server="mars").base_url == "https://share1.dexcom.com"


def test_login_rejected(client):
    client.session.post.return_value = response(500, text='{"Code":"AccountPasswordInvalid"}',
                                                reason="Internal Server Error")
    with pytest.raises(HttpError) as exc:
        client.login()
    assert exc.value.status_code == 500
    assert exc.value.is_auth_failure
    assert client.session_id is None


def test_login_null_session(client):
    client.session.post.return_value = response(text='"00000000-0000-0000-0000-000000000000"')
    with pytest.raises(AuthError):
        client.login()
    assert client.session_id is None


def test_login_without_credentials():
    client = DexcomShare("", "", "us")
    client.session = MagicMock()
    with pytest.raises(SetupRequired):
        client.login()
    client.session.post.assert_not_called()


def test_fetch_without_session(client):
    with pytest.raises(NotAuthenticated):
        client.fetch_readings()
    client.session.post.assert_not_called()


def test_fetch_readings(client):
    client.session_id = SESSION_ID
    client.session.post.return_value = response(payload=[
        {"WT": "Date(1700000000000)", "ST": "Date(1700000000000)", "Value": 120, "Trend": "Flat"},
        {"WT": "Date(1699999700000)", "Value": 118, "Trend": 9},
    ])
    readings = client.fetch_readings()
    assert [(r.value, r.timestamp, r.trend) for r in readings] == [
        (120, 1700000000.0, TREND_FLAT), (118, 1699999700.0, TREND_NONE)]
    args, kwargs = client.session.post.call_args
    assert args[0] == "https://share1.dexcom.com" + READINGS_API
    assert kwargs["params"] == {"sessionID": SESSION_ID, "minutes": 1440, "maxCount": 24}
    assert kwargs["json"] is None
    assert client.session_id == SESSION_ID


def test_fetch_http_error_clears_session(client):
    client.session_id = SESSION_ID
    client.session.post.return_value = response(401, reason="Unauthorized")
    with pytest.raises(HttpError) as exc:
        client.fetch_readings()
    assert exc.value.status_code == 401
    assert client.session_id is None


def test_fetch_timeout(client):
    client.session_id = SESSION_ID
    client.session.post.side_effect = requests.exceptions.Timeout()
    with pytest.raises(NetworkError) as exc:
        client.fetch_readings()
    assert not isinstance(exc.value, HttpError)
    assert client.session_id is None


def test_fetch_connection_error(client):
    client.session_id = SESSION_ID
    client.session.post.side_effect = requests.exceptions.ConnectionError("DNS failure")
    with pytest.raises(NetworkError):
        client.fetch_readings()


def test_fetch_bad_payload(client):
    client.session_id = SESSION_ID
    client.session.post.return_value = response(payload={"Code": "SessionNotValid"})
    with pytest.raises(DataError):
        client.fetch_readings()
    assert client.session_id is None


def test_fetch_unparsable_body(client):
    client.session_id = SESSION_ID
    client.session.post.return_value = response(text="<html>")
    with pytest.raises(DataError):
        client.fetch_readings()


def test_http_error_classification():
    assert HttpError(401).is_auth_failure
    assert HttpError(503).is_auth_failure
    assert not HttpError(404).is_auth_failure
    assert not HttpError(429).is_auth_failure


def test_close_session(client):
    client.session_id = SESSION_ID
    client.close_session()
    assert client.session_id is None
    client.session.close.assert_called_once_with()
