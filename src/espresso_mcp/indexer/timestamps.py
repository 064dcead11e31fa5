"""Org timestamp extraction.

Five independent patterns are applied to the same text. Each one reports
every non-overlapping match, so a scheduled timestamp is also reported as
an active one.
"""

import logging
import re
from datetime import datetime

from espresso_mcp.indexer.models import OrgTimestamp

logger = logging.getLogger(__name__)

_DATE = r"(\d{4}-\d{2}-\d{2})\s+(\w{3})"
_TIME_SPAN = r"(?:\s+(\d{1,2}:\d{2})(?:-(\d{1,2}:\d{2}))?)?"
_TIME = r"(?:\s+(\d{1,2}:\d{2}))?"

ACTIVE_PATTERN = re.compile(rf"<{_DATE}{_TIME_SPAN}>")
INACTIVE_PATTERN = re.compile(rf"\[{_DATE}{_TIME_SPAN}\]")
SCHEDULED_PATTERN = re.compile(rf"SCHEDULED:\s*<{_DATE}{_TIME_SPAN}>")
DEADLINE_PATTERN = re.compile(rf"DEADLINE:\s*<{_DATE}{_TIME_SPAN}>")
RANGE_PATTERN = re.compile(rf"<{_DATE}{_TIME}>\s*--\s*<{_DATE}{_TIME}>")

# Patterns whose groups are (date, day, start time, end time)
SINGLE_PATTERNS = (
    ("active", ACTIVE_PATTERN),
    ("inactive", INACTIVE_PATTERN),
    ("scheduled", SCHEDULED_PATTERN),
    ("deadline", DEADLINE_PATTERN),
)


def to_datetime(date: str, clock: str | None = None) -> datetime:
    """
    Build an instant from an org date and optional HH:MM time.

    Raises:
        ValueError: If the date or time does not exist (e.g. 2024-02-30)
    """
    if clock:
        return datetime.strptime(f"{date} {clock}", "%Y-%m-%d %H:%M")
    return datetime.strptime(date, "%Y-%m-%d")


def _single(kind: str, match: re.Match) -> OrgTimestamp:
    date, _day, start, end = match.groups()
    return OrgTimestamp(
        type=kind,
        datetime=date,
        original_text=match.group(0),
        start_date=to_datetime(date, start),
        end_date=to_datetime(date, end) if end else None,
    )


def _range(match: re.Match) -> OrgTimestamp:
    start_date, _start_day, start_time, end_date, _end_day, end_time = match.groups()
    return OrgTimestamp(
        type="range",
        datetime=start_date,
        original_text=match.group(0),
        start_date=to_datetime(start_date, start_time),
        end_date=to_datetime(end_date, end_time),
    )


def parse_timestamps(text: str) -> list[OrgTimestamp]:
    """Extract all timestamp annotations from text, grouped by pattern."""
    timestamps: list[OrgTimestamp] = []

    for kind, pattern in SINGLE_PATTERNS:
        for match in pattern.finditer(text):
            try:
                timestamps.append(_single(kind, match))
            except ValueError as e:
                logger.warning("Failed to parse timestamp %r: %s", match.group(0), e)

    for match in RANGE_PATTERN.finditer(text):
        try:
            timestamps.append(_range(match))
        except ValueError as e:
            logger.warning("Failed to parse timestamp %r: %s", match.group(0), e)

    return timestamps
