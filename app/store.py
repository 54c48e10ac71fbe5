import logging
import secrets
import string
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from errors import ConflictError, ExpiredError, InternalError, NotFoundError, ValidationError
from models import DIRECT_REFERRER, ClickEvent, LinkRecord

logger = logging.getLogger("shortlinks.store")

# Same URL-safe alphabet nanoid draws from
ALPHABET = string.ascii_letters + string.digits + "_-"

# GET routes that would shadow a link at /{shortcode}
RESERVED = {"health", "docs", "redoc", "openapi.json"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code(length: int = 5) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def validate_shortcode(shortcode: str) -> str:
    if "/" in shortcode or shortcode in RESERVED:
        raise ValidationError(f"Invalid shortcode: {shortcode!r}")
    return shortcode


class ShortlinkStore:
    """In-memory shortcode -> LinkRecord mapping.

    Every operation runs under one lock, so insert-if-absent, click append
    and removal of expired records are atomic with respect to each other.
    Expiry is lazy: a record past its ``expires_at`` is dropped by whichever
    operation next touches it (or by :meth:`sweep`).
    """

    def __init__(
        self,
        code_length: int = 5,
        max_attempts: int = 32,
        default_validity_minutes: int = 30,
        clock: Callable[[], datetime] = utcnow,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.code_length = code_length
        self.max_attempts = max_attempts
        self.default_validity_minutes = default_validity_minutes
        self._clock = clock
        self._records: dict[str, LinkRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, shortcode: object) -> bool:
        with self._lock:
            return shortcode in self._records

    def create(
        self,
        url: str | None,
        validity_minutes: int | None = None,
        shortcode: str | None = None,
    ) -> LinkRecord:
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("URL is required")
        if validity_minutes is not None and (
            isinstance(validity_minutes, bool) or not isinstance(validity_minutes, int) or validity_minutes < 0
        ):
            raise ValidationError("Validity must be a non-negative number of minutes")
        if shortcode:
            validate_shortcode(shortcode)
        minutes = validity_minutes or self.default_validity_minutes

        with self._lock:
            now = self._clock()
            if shortcode:
                if self._live(shortcode, now) is not None:
                    raise ConflictError("Requested shortcode is already in use")
                code = shortcode
            else:
                code = self._generate_locked(now)
            try:
                expires_at = now + timedelta(minutes=minutes)
            except (OverflowError, ValueError):
                raise ValidationError(f"Validity of {minutes} minutes is out of range") from None
            record = LinkRecord(shortcode=code, original_url=url, created_at=now, expires_at=expires_at)
            self._records[code] = record
            logger.debug("Created %s -> %s (expires %s)", code, url, record.expires_at.isoformat())
            return record.snapshot()

    def resolve(self, shortcode: str, referrer: str | None = None, user_agent: str | None = None) -> str:
        with self._lock:
            record = self._require_live(shortcode)
            try:
                self._append_click(record, referrer, user_agent)
            except Exception:
                logger.exception("Failed to record click for %s", shortcode)
            return record.original_url

    def record_click(self, shortcode: str, referrer: str | None = None, user_agent: str | None = None) -> bool:
        with self._lock:
            record = self._live(shortcode, self._clock())
            if record is None:
                return False
            self._append_click(record, referrer, user_agent)
            return True

    def stats(self, shortcode: str) -> LinkRecord:
        with self._lock:
            return self._require_live(shortcode).snapshot()

    def sweep(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [code for code, record in self._records.items() if record.is_expired(now)]
            for code in expired:
                del self._records[code]
        return len(expired)

    # Helpers below expect self._lock to be held

    def _live(self, shortcode: str, now: datetime) -> LinkRecord | None:
        record = self._records.get(shortcode)
        if record is not None and record.is_expired(now):
            del self._records[shortcode]
            logger.debug("Dropped expired shortcode %s", shortcode)
            return None
        return record

    def _require_live(self, shortcode: str) -> LinkRecord:
        record = self._records.get(shortcode)
        if record is None:
            raise NotFoundError("Short link not found")
        if record.is_expired(self._clock()):
            del self._records[shortcode]
            raise ExpiredError("Short link has expired")
        return record

    def _generate_locked(self, now: datetime) -> str:
        for _ in range(self.max_attempts):
            code = generate_code(self.code_length)
            if code not in RESERVED and self._live(code, now) is None:
                return code
        raise InternalError(f"Could not generate a free shortcode after {self.max_attempts} attempts")

    def _append_click(self, record: LinkRecord, referrer: str | None, user_agent: str | None) -> None:
        record.clicks.append(
            ClickEvent(timestamp=self._clock(), referrer=referrer or DIRECT_REFERRER, user_agent=user_agent)
        )
