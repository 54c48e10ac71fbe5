from dataclasses import dataclass, field, replace
from datetime import datetime

DIRECT_REFERRER = "Direct"


@dataclass(frozen=True)
class ClickEvent:
    timestamp: datetime
    referrer: str = DIRECT_REFERRER
    user_agent: str | None = None


@dataclass
class LinkRecord:
    shortcode: str
    original_url: str
    created_at: datetime
    expires_at: datetime
    clicks: list[ClickEvent] = field(default_factory=list)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    @property
    def total_clicks(self) -> int:
        return len(self.clicks)

    def snapshot(self) -> "LinkRecord":
        """Copy whose click list no longer tracks the stored record."""
        return replace(self, clicks=list(self.clicks))
