"""Core data types for the arrivals service"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any


def isoformat(timestamp: float | None) -> str | None:
    """Format an epoch timestamp as an ISO-8601 UTC string"""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class RunTrigger(Enum):
    """What started an acquisition"""

    SCHEDULED = "scheduled"
    FORCED = "forced"


class RunOutcome(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


class TriggerOutcome(Enum):
    """Result of asking the coordinator to refresh"""

    STARTED = auto()  # Accepted, running in the background
    SUCCEEDED = auto()
    FAILED = auto()
    BUSY = auto()  # Another run is in progress
    SKIPPED = auto()  # Scheduled trigger while auto-refresh is disabled


class AuthState(Enum):
    """Login state machine states"""

    START = auto()
    SESSION_PROBE = auto()
    CREDENTIAL_LOGIN = auto()
    TWO_FACTOR_CHALLENGE = auto()
    AUTHENTICATED = auto()
    FAILED = auto()


@dataclass
class Credentials:
    """Back-office login credentials"""

    email: str | None = None
    password: str | None = None

    def missing(self) -> list[str]:
        missing = []
        if not self.email:
            missing.append("email")
        if not self.password:
            missing.append("password")
        return missing


@dataclass
class Guest:
    """One arrival card from the booking manager"""

    name: str
    room_type: str = ""
    persons: str = ""
    amount_due: str = ""
    dates: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "room_type": self.room_type,
            "persons": self.persons,
            "amount_due": self.amount_due,
            "dates": self.dates,
        }


@dataclass
class RunError:
    """Last recorded acquisition failure"""

    kind: str
    message: str
    timestamp: float

    @classmethod
    def from_exception(cls, exc: BaseException, timestamp: float) -> "RunError":
        kind = getattr(exc, "kind", None) or type(exc).__name__
        return cls(kind=kind, message=str(exc) or kind, timestamp=timestamp)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "timestamp": isoformat(self.timestamp),
        }


@dataclass
class AcquisitionRun:
    """A single end-to-end attempt to log in and fetch arrivals"""

    trigger: RunTrigger
    started_at: float
    outcome: RunOutcome = RunOutcome.PENDING
    error: RunError | None = None
    finished_at: float | None = None

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger.value,
            "started_at": isoformat(self.started_at),
            "outcome": self.outcome.value,
            "error": self.error.to_dict() if self.error else None,
            "finished_at": isoformat(self.finished_at),
        }


@dataclass
class TwoFactorChallenge:
    """Snapshot of the outstanding second-factor challenge"""

    pending: bool = False
    deadline: float | None = None  # Epoch seconds


@dataclass
class CachedResult:
    value: Any
    produced_at: float
    ttl: float


@dataclass
class ServiceStatus:
    """Coordinator status as reported to callers"""

    running: bool
    two_factor_pending: bool
    auto_refresh_enabled: bool
    last_refresh_at: float | None
    last_error: RunError | None
    seconds_until_next_refresh: int | None
    cache_ready: bool = False
    guest_count: int = 0
    current_run: AcquisitionRun | None = None

    def to_dict(self) -> dict:
        return {
            "running": self.running,
            "two_factor_pending": self.two_factor_pending,
            "auto_refresh_enabled": self.auto_refresh_enabled,
            "last_refresh_time": isoformat(self.last_refresh_at),
            "last_error": self.last_error.to_dict() if self.last_error else None,
            "next_refresh_in": self.seconds_until_next_refresh,
            "cache_status": "ready" if self.cache_ready else "empty",
            "guest_count": self.guest_count,
            "current_run": self.current_run.to_dict() if self.current_run else None,
        }
