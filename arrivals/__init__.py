"""Amenitiz arrivals service - scheduled back-office scraping with 2FA handoff"""

from .core.exceptions import (
    ArrivalsError,
    AuthenticationFailed,
    ConfigurationError,
    ExtractionFailure,
    StorageFailure,
    TwoFactorRejected,
    TwoFactorUnavailable,
)
from .core.types import (
    AcquisitionRun,
    Credentials,
    Guest,
    RunTrigger,
    ServiceStatus,
    TriggerOutcome,
)

__all__ = [
    "AcquisitionRun",
    "ArrivalsError",
    "AuthenticationFailed",
    "ConfigurationError",
    "Credentials",
    "ExtractionFailure",
    "Guest",
    "RunTrigger",
    "ServiceStatus",
    "StorageFailure",
    "TriggerOutcome",
    "TwoFactorRejected",
    "TwoFactorUnavailable",
]
