"""Custom exceptions for the arrivals service"""


class ArrivalsError(Exception):
    """Base exception for the arrivals service"""

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigurationError(ArrivalsError):
    """Required configuration (credentials) is missing"""

    def __init__(self, missing: list[str] | None = None):
        self.missing = missing or []
        msg = "Amenitiz credentials are not configured"
        if self.missing:
            msg += f" (missing: {', '.join(self.missing)})"
        super().__init__(msg)


class TwoFactorUnavailable(ArrivalsError):
    """A second-factor challenge was shown but no code provider is available"""

    def __init__(self):
        super().__init__("2FA required but no code provider available")


class TwoFactorRejected(ArrivalsError):
    """The one-time code was missing, timed out or not accepted"""

    def __init__(self, reason: str = "2FA verification failed"):
        self.reason = reason
        super().__init__(reason)


class AuthenticationFailed(ArrivalsError):
    """Credential login did not reach the authenticated surface"""

    def __init__(self, url: str | None = None):
        self.url = url
        msg = "Login failed: authenticated dashboard not reached"
        if url:
            msg += f" (still on {url})"
        super().__init__(msg)


class ExtractionFailure(ArrivalsError):
    """Post-login data fetch failed"""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Failed to fetch arrivals: {detail}")


class StorageFailure(ArrivalsError):
    """Session or export persistence I/O failed (never fatal)"""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"Storage error on {path}: {detail}")
