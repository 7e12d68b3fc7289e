from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def format_dt(dt: datetime | None) -> str:
    """ISO 8601 UTC timestamp, e.g. 2026-02-21T12:39:08Z"""
    if dt is None:
        return "Unknown"
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class TrackedSection:
    """
    One course section a subscriber wants monitored.

    Identity is every location field plus the subscriber; `status` (open or
    not) is the only mutable part and is rewritten by the reconciliation loop
    after a successful catalog query.
    """
    term: str
    school: str
    subject: str
    number: str                    # catalog number, e.g. "281"
    section: str                   # section number, e.g. "002"
    subscriber: str                # contact address (email)
    status: bool = False

    @property
    def key(self) -> tuple[str, str, str, str, str, str]:
        return (self.term, self.school, self.subject, self.number, self.section, self.subscriber)

    @property
    def label(self) -> str:
        """Human-readable name, e.g. 'EECS 281, section 002'."""
        return f"{self.subject} {self.number}, section {self.section}"

    def with_status(self, status: bool) -> "TrackedSection":
        return replace(self, status=status)


@dataclass(frozen=True)
class AvailabilityStatus:
    open: bool


class Outcome(str, Enum):
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    QUERY_FAILED = "query_failed"
    PERSIST_ERROR = "persist_error"
    SKIPPED = "skipped"            # pass was stopped before this section started


@dataclass
class SectionReport:
    section: TrackedSection
    outcome: Outcome
    detected: bool | None = None   # parsed status, None when the query failed
    error: str | None = None       # error kind, e.g. "unreachable"
    notified: bool = False

    def to_dict(self) -> dict:
        s = self.section
        return {
            "term": s.term,
            "school": s.school,
            "subject": s.subject,
            "number": s.number,
            "section": s.section,
            "status": None if self.detected is None else ("open" if self.detected else "closed"),
            "outcome": self.outcome.value,
            "error": self.error,
            "notified": self.notified,
        }

    def to_line(self) -> str:
        if self.detected is None:
            status = "N/A"
        else:
            status = "OPEN" if self.detected else "CLOSED"
        line = f"{self.section.label} | Status={status} | Outcome={self.outcome.value.upper()}"
        if self.error:
            line += f" | Error={self.error}"
        if self.notified:
            line += f" | Notified={self.section.subscriber}"
        return line


@dataclass
class PassReport:
    """Aggregated outcomes of one reconciliation pass."""
    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None
    sections: list[SectionReport] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        result = {o.value: 0 for o in Outcome}
        for r in self.sections:
            result[r.outcome.value] += 1
        return result

    def by_outcome(self, outcome: Outcome) -> list[SectionReport]:
        return [r for r in self.sections if r.outcome is outcome]

    @property
    def notifications_sent(self) -> int:
        return sum(1 for r in self.sections if r.notified)

    def to_dict(self) -> dict:
        return {
            "started_at": format_dt(self.started_at),
            "finished_at": format_dt(self.finished_at),
            "counts": self.counts(),
            "sections": [r.to_dict() for r in self.sections],
        }

    def to_text(self) -> str:
        lines = [r.to_line() for r in self.sections]
        summary = ", ".join(f"{k}={v}" for k, v in self.counts().items() if v)
        lines.append(f"[{format_dt(self.finished_at)}] {len(self.sections)} section(s) checked: {summary or 'none'}")
        return "\n".join(lines) + "\n"
