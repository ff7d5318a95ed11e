class PyCGMWatchException(Exception):
    pass


class SetupRequired(PyCGMWatchException):
    """No Dexcom Share credentials configured"""
    pass


class AuthError(PyCGMWatchException):
    """Login rejected or session refused"""
    status_code = None


class NotAuthenticated(AuthError):
    """A fetch was attempted without holding a session"""
    pass


class NetworkError(PyCGMWatchException):
    """Timeout, transport failure or unclassified HTTP error"""
    status_code = None


class HttpError(NetworkError):
    def __init__(self, status_code, reason=""):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"HTTP {status_code}: {reason}")

    @property
    def is_auth_failure(self) -> bool:
        # Dexcom answers a bad session with 500 as often as with 401
        return self.status_code == 401 or 500 <= self.status_code < 600


class DataError(PyCGMWatchException):
    """Empty or unparsable response"""
    pass
