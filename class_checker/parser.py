
# Turns a raw catalog body into AvailabilityStatus(open=...).
#
# Two strategies with the same interface, picked once at startup to match
# the catalog client in use:
#     def parse(self, body: str, section: TrackedSection) -> AvailabilityStatus
#
# Failures are raised, never guessed:
#   NotFound     the section isn't in the catalog (or is flagged unavailable)
#   Unparseable  the body doesn't look like what we expect

import json
import logging

from class_checker.errors import NotFound, Unparseable
from class_checker.models import AvailabilityStatus, TrackedSection

log = logging.getLogger(__name__)

NOT_AVAILABLE_SENTINEL = "Section information is currently not available"

SEATS_FIELD = "AvailableSeats"
SECTION_ENVELOPE = "getSOCSectionDetailResponse"

ROW_MARKER = "<table border=1 cellspacing=0 cellpadding=3><tr><td><b>{section}<br>"


def _check_not_available(body: str) -> None:
    if NOT_AVAILABLE_SENTINEL in body:
        raise NotFound("section information is currently not available")


class JSONAvailabilityParser:
    """Reads AvailableSeats from the SOC section-detail payload; "0" means closed."""

    def parse(self, body: str, section: TrackedSection) -> AvailabilityStatus:
        _check_not_available(body)

        # cheap presence check first: gateway error payloads are often valid
        # JSON of a completely different shape
        if SEATS_FIELD not in body:
            raise NotFound(f"no {SEATS_FIELD} in response for {section.label}")

        try:
            data = json.loads(body)
        except ValueError as exc:
            raise Unparseable(f"invalid JSON for {section.label}: {exc}") from exc

        if not isinstance(data, dict):
            raise Unparseable(f"expected a JSON object for {section.label}, got {type(data).__name__}")

        payload = data.get(SECTION_ENVELOPE, data)
        seats = payload.get(SEATS_FIELD) if isinstance(payload, dict) else None
        if seats is None or isinstance(seats, (dict, list, bool)):
            raise Unparseable(f"{SEATS_FIELD} missing or malformed for {section.label}")

        return AvailabilityStatus(open=str(seats).strip() != "0")


class _Cursor:
    """
    Forward-only substring finder over a document.

    Every lookup is bounds-checked: a miss raises the error class the caller
    chose instead of slicing from index -1.
    """

    def __init__(self, text: str, pos: int = 0) -> None:
        self.text = text
        self.pos = pos

    def seek(self, needle: str, error: type[Exception], what: str) -> int:
        idx = self.text.find(needle, self.pos)
        if idx < 0:
            raise error(f"{what} not found")
        self.pos = idx
        return idx

    def between(self, start: int, end: int) -> str:
        if not 0 <= start <= end <= len(self.text):
            raise Unparseable(f"bad slice [{start}:{end}]")
        return self.text[start:end]


class HTMLAvailabilityParser:
    """
    Course-guide scraper.

    Finds the section's row table, then the first <span> after it; the
    span's inner text is "Open" when seats are available.

    Caveat: the row marker is matched literally, so the same string appearing
    elsewhere in the page would be picked up first.
    """

    def parse(self, body: str, section: TrackedSection) -> AvailabilityStatus:
        _check_not_available(body)

        cursor = _Cursor(body)
        cursor.seek(ROW_MARKER.format(section=section.section), NotFound, f"row for {section.label}")
        cursor.seek("<span", Unparseable, "status <span>")
        open_end = cursor.seek(">", Unparseable, "end of <span> tag")
        close_start = cursor.seek("</", Unparseable, "closing tag after <span>")

        status_text = cursor.between(open_end + 1, close_start)
        log.debug("%s status text: %r", section.label, status_text)
        return AvailabilityStatus(open=status_text == "Open")


def make_parser(catalog_mode: str):
    if catalog_mode == "api":
        return JSONAvailabilityParser()
    if catalog_mode == "legacy":
        return HTMLAvailabilityParser()
    raise ValueError(f"unknown catalog mode {catalog_mode!r}")
