"""Short-lived authenticated sessions."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Session:
    """Authenticated handle to one external service.

    A session is valid only while ``now < obtained_at + ttl``. Sessions live
    for a single invocation and are never written to disk.
    """
    service: str
    token: str = field(repr=False)
    ttl: timedelta
    obtained_at: datetime = field(default_factory=utc_now)

    @property
    def expires_at(self) -> datetime:
        """When the session stops being usable."""
        return self.obtained_at + self.ttl

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.token}"
