"""Text edits that remove the pinned marking from a headline.

Only two edits are ever made: dropping the ``pinned`` tag from the headline
line, and dropping the ``:PINNED:`` property line (plus its drawer when
nothing else is left in it). Every other line is kept byte-for-byte,
including its line ending.
"""

import re

from espresso_mcp.indexer.errors import PinLocationError
from espresso_mcp.indexer.parser import (
    PINNED,
    PROPERTIES_CLOSE,
    PROPERTIES_OPEN,
    PROPERTY_PATTERN,
    match_headline,
)

TAG_GROUP_PATTERN = re.compile(r"^(.*?)(\s+)(:[\w@#%:]+:)(\s*)$")


def _split_ending(line: str) -> tuple[str, str]:
    if line.endswith("\r"):
        return line[:-1], "\r"
    return line, ""


def strip_pinned_tag(line: str) -> tuple[str, bool]:
    """
    Remove the pinned tag from a headline line.

    Returns:
        Tuple of (new_line, changed). When the pinned tag was the only tag,
        the tag group and the whitespace before it are removed, except for
        the single space a title-less headline needs after its stars.
    """
    text, ending = _split_ending(line)
    if not match_headline(text):
        return line, False

    match = TAG_GROUP_PATTERN.match(text)
    if not match:
        return line, False

    prefix, gap, group, trailing = match.groups()
    tags = [tag for tag in group.split(":") if tag]
    remaining = [tag for tag in tags if tag.lower() != PINNED]
    if len(remaining) == len(tags):
        return line, False

    if remaining:
        text = f"{prefix}{gap}:{':'.join(remaining)}:{trailing}"
    else:
        text = prefix.rstrip()
        if not match_headline(text):
            # Bare stars are not a headline; keep one space after them
            text = f"{text} "
    return text + ending, True


def _is_pinned_property(line: str) -> bool:
    match = PROPERTY_PATTERN.match(line)
    return bool(match) and match.group(1).strip().lower() == PINNED


def find_property_drawers(lines: list[str], headline_index: int) -> list[tuple[int, int]]:
    """
    Locate the property drawers that belong to a headline.

    The search stops at the next headline. A drawer that is still open
    when the next headline (or end of file) is reached is ignored.

    Returns:
        List of (open_index, close_index) pairs.
    """
    drawers: list[tuple[int, int]] = []
    open_index: int | None = None

    for index in range(headline_index + 1, len(lines)):
        line = lines[index]
        if match_headline(line):
            break
        stripped = line.strip()
        if stripped == PROPERTIES_OPEN:
            open_index = index
        elif stripped == PROPERTIES_CLOSE and open_index is not None:
            drawers.append((open_index, index))
            open_index = None

    return drawers


def remove_pinned_property(lines: list[str], headline_index: int) -> tuple[list[str], bool]:
    """
    Delete the pinned property line from the headline's drawer.

    If the drawer is left with only its open and close markers, the drawer
    is deleted too.

    Returns:
        Tuple of (new_lines, changed).
    """
    for open_index, close_index in find_property_drawers(lines, headline_index):
        for index in range(open_index + 1, close_index):
            if not _is_pinned_property(lines[index]):
                continue

            new_lines = lines[:index] + lines[index + 1 :]
            close_index -= 1
            if close_index == open_index + 1:
                del new_lines[open_index : close_index + 1]
            return new_lines, True

    return lines, False


def unpin_headline(text: str, line_number: int) -> tuple[str, bool]:
    """
    Remove the pinned tag and property from the headline at line_number.

    Args:
        text: Full file text
        line_number: 1-based line of the headline

    Returns:
        Tuple of (new_text, changed). Nothing is changed when the line is
        no longer a headline.

    Raises:
        PinLocationError: If line_number is outside the file
    """
    lines = text.split("\n")
    if line_number < 1 or line_number > len(lines):
        raise PinLocationError(
            f"Line {line_number} is out of range (file has {len(lines)} lines)"
        )

    index = line_number - 1
    if not match_headline(lines[index]):
        return text, False

    lines[index], tag_changed = strip_pinned_tag(lines[index])
    lines, property_changed = remove_pinned_property(lines, index)

    if not (tag_changed or property_changed):
        return text, False
    return "\n".join(lines), True
