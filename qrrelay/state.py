"""Session state owned by the running app: latest scan + active scanner count."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Role(str, Enum):
    SCANNER = "scanner"
    VIEWER = "viewer"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a trailing Z."""
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ScanPayload:
    content: str | None
    timestamp: datetime = field(default_factory=utcnow)

    def to_message(self, scanner_count: int) -> dict:
        return {
            "content": self.content,
            "timestamp": format_timestamp(self.timestamp),
            "scannerCount": scanner_count,
        }


@dataclass
class SessionState:
    """Mutated only by the broadcaster. One instance per app lifespan."""

    latest: ScanPayload | None = None
    scanner_count: int = 0

    def increment_scanners(self) -> int:
        self.scanner_count += 1
        return self.scanner_count

    def decrement_scanners(self) -> int:
        self.scanner_count = max(0, self.scanner_count - 1)
        return self.scanner_count

    def has_content(self) -> bool:
        return self.latest is not None and bool(self.latest.content)
