"""Parser for org-mode outlines.

Only the constructs needed to find pinned entries are understood:
headlines (with TODO keywords and tags), property drawers, free-text
bodies, and timestamps.
"""

import logging
import os
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from espresso_mcp.indexer.models import Headline, Pin
from espresso_mcp.indexer.timestamps import parse_timestamps

logger = logging.getLogger(__name__)

TODO_KEYWORDS = ("TODO", "NEXT", "DONE", "WAITING", "CANCELED")

PINNED = "pinned"

PROPERTIES_OPEN = ":PROPERTIES:"
PROPERTIES_CLOSE = ":END:"

# The tag group only needs whitespace before it, so a headline made of
# nothing but tags ("* :pinned:") still has tags and an empty title.
HEADLINE_PATTERN = re.compile(
    r"^(\*+)\s+"
    rf"(?:({'|'.join(TODO_KEYWORDS)})(?:\s+|$))?"
    r"(.*?)"
    r"(?:(?<=\s):([\w@#%:]+):)?\s*$"
)

PROPERTY_PATTERN = re.compile(r"^\s*:([^:]+):\s*(.*)$")


class _State(Enum):
    OUTSIDE = "outside"  # Before the first headline
    BODY = "body"  # Inside a headline's body
    DRAWER = "drawer"  # Inside a property drawer


@dataclass
class ParsedOrgFile:
    """Result of parsing one org file."""

    file_path: str
    headlines: list[Headline] = field(default_factory=list)
    pinned_headlines: list[Headline] = field(default_factory=list)
    parse_time: float = 0.0  # Milliseconds


@dataclass
class _OpenHeadline:
    """A headline whose body is still being read."""

    headline: Headline
    body: list[str] = field(default_factory=list)


def match_headline(line: str) -> re.Match | None:
    """Return the headline match for a line, or None if it is not a headline."""
    return HEADLINE_PATTERN.match(line.rstrip("\r"))


def _new_headline(match: re.Match, line: str, line_number: int) -> Headline:
    stars, todo, title, tag_string = match.groups()
    tags = [tag for tag in tag_string.split(":") if tag] if tag_string else []
    return Headline(
        level=len(stars),
        todo=todo,
        title=title.strip(),
        tags=tags,
        line_number=line_number,
        content=line.rstrip("\r"),
    )


def _finalize(current: _OpenHeadline) -> Headline:
    """Close a headline: attach its body and extract its timestamps."""
    headline = current.headline
    body = "\n".join(line.rstrip("\r") for line in current.body).strip()
    headline.detailed_content = body or None
    headline.timestamps = parse_timestamps(f"{headline.content}\n{body}")
    return headline


def parse_org_text(text: str) -> list[Headline]:
    """Parse org text into headlines in a single forward pass."""
    headlines: list[Headline] = []
    current: _OpenHeadline | None = None
    state = _State.OUTSIDE

    for index, line in enumerate(text.split("\n")):
        match = match_headline(line)
        if match:
            if current is not None:
                headlines.append(_finalize(current))
            current = _OpenHeadline(_new_headline(match, line, index + 1))
            state = _State.BODY
            continue

        stripped = line.strip()
        if stripped == PROPERTIES_OPEN:
            state = _State.DRAWER
            continue
        if stripped == PROPERTIES_CLOSE:
            state = _State.BODY if current is not None else _State.OUTSIDE
            continue

        if state is _State.DRAWER:
            prop = PROPERTY_PATTERN.match(line)
            if prop and current is not None:
                key = prop.group(1).strip()
                current.headline.properties[key] = prop.group(2).strip()
        elif state is _State.BODY and current is not None:
            current.body.append(line)

    if current is not None:
        headlines.append(_finalize(current))

    return headlines


def is_pinned_headline(headline: Headline) -> bool:
    """A headline is pinned by a 'pinned' property or tag, in any case."""
    if any(key.lower() == PINNED for key in headline.properties):
        return True
    return any(tag.lower() == PINNED for tag in headline.tags)


def parse_org_file(file_path: str | Path) -> ParsedOrgFile:
    """
    Parse an org file and select its pinned headlines.

    Raises:
        OSError: If the file cannot be read
        UnicodeDecodeError: If the file is not valid UTF-8
    """
    start = time.perf_counter()
    path = Path(file_path)
    with open(path, encoding="utf-8", newline="") as f:
        text = f.read()

    headlines = parse_org_text(text)
    pinned = [h for h in headlines if is_pinned_headline(h)]
    parse_time = (time.perf_counter() - start) * 1000

    logger.debug(
        "Parsed %s: %d headlines, %d pinned (%.1fms)",
        path.name,
        len(headlines),
        len(pinned),
        parse_time,
    )
    return ParsedOrgFile(
        file_path=str(path),
        headlines=headlines,
        pinned_headlines=pinned,
        parse_time=parse_time,
    )


def generate_pin_id(file_path: str | Path, line_number: int) -> str:
    """Pin ids only change when the file name or headline line changes."""
    return f"org-{Path(file_path).stem}-{line_number}"


def convert_to_pins(file_path: str | Path, headlines: list[Headline]) -> list[Pin]:
    """Project pinned headlines into pins stamped with the file's mtime."""
    path = str(file_path)
    mtime = os.stat(path).st_mtime * 1000

    return [
        Pin(
            id=generate_pin_id(path, headline.line_number),
            content=headline.title,
            timestamp=mtime,
            file_path=path,
            source_file=path,
            line_number=headline.line_number,
            org_headline=headline.content,
            tags=list(headline.tags),
            detailed_content=headline.detailed_content,
            org_timestamps=list(headline.timestamps),
        )
        for headline in headlines
    ]


def extract_preview(headline: Headline, max_length: int = 100) -> str:
    """Short display text: TODO keyword plus title, truncated."""
    preview = f"{headline.todo} {headline.title}" if headline.todo else headline.title
    if len(preview) > max_length:
        preview = preview[: max_length - 3] + "..."
    return preview


def get_file_stats(file_path: str | Path) -> dict:
    """Size, mtime, line and headline counts of an org file."""
    path = Path(file_path)
    stat = path.stat()
    text = path.read_text(encoding="utf-8")
    headlines = parse_org_text(text)

    return {
        "size": stat.st_size,
        "last_modified": stat.st_mtime * 1000,
        "total_lines": len(text.split("\n")),
        "total_headlines": len(headlines),
        "pinned_headlines": sum(1 for h in headlines if is_pinned_headline(h)),
    }


def validate_org_file(file_path: str | Path) -> dict:
    """
    Check an org file for structural problems.

    Returns:
        Dict with is_valid, errors (unreadable file, unclosed drawer) and
        warnings (no headlines).
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        text = Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        errors.append(f"Cannot read file: {e}")
    else:
        has_headlines = False
        drawer_open = False
        for line in text.split("\n"):
            if match_headline(line):
                has_headlines = True
            stripped = line.strip()
            if stripped == PROPERTIES_OPEN:
                drawer_open = True
            elif stripped == PROPERTIES_CLOSE:
                drawer_open = False

        if not has_headlines:
            warnings.append("No headlines found in org file")
        if drawer_open:
            errors.append("Unclosed properties block found")

    return {"is_valid": not errors, "errors": errors, "warnings": warnings}


def search_headlines(file_path: str | Path, term: str) -> list[Headline]:
    """Headlines whose title or tags contain term (case-insensitive)."""
    try:
        parsed = parse_org_file(file_path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to search in %s: %s", file_path, e)
        return []

    needle = term.lower()
    return [
        h
        for h in parsed.headlines
        if needle in h.title.lower() or any(needle in tag.lower() for tag in h.tags)
    ]
