"""MCP Resources for espressoMCP.

Resources expose the published pins as read-only markdown documents: the
ordered pin list and a detail view per pin.
"""

from datetime import datetime

from espresso_mcp.indexer import Pin, PinIndexer


def _format_mtime(timestamp_ms: float) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).isoformat(timespec="seconds")


def _location(pin: Pin) -> str:
    if pin.file_path and pin.line_number:
        return f"{pin.file_path}:{pin.line_number}"
    return pin.file_path or "unknown"


def get_pins_resource(indexer: PinIndexer) -> str:
    """Resource: espresso://pins

    Lists the pins in display order.
    """
    pins = indexer.get_current_pins()

    result_lines = ["# Pinned Items\n"]
    result_lines.append(f"Total pins: {len(pins)}\n")
    result_lines.append("\n")

    for pin in pins:
        tags = [tag for tag in pin.tags if tag.lower() != "pinned"]
        line = f"- **{pin.content}** (`{pin.id}`)"
        if tags:
            line += " " + " ".join(f"#{tag}" for tag in tags)
        result_lines.append(line + "\n")

    return "".join(result_lines)


def get_pin_detail_resource(indexer: PinIndexer, pin_id: str) -> str:
    """Resource: espresso://pins/{pin_id}

    Shows the headline, its body, and its timestamps.

    Raises:
        ValueError: If the pin is not in the current pin set
    """
    pin = next((p for p in indexer.get_current_pins() if p.id == pin_id), None)
    if pin is None:
        raise ValueError(f"Pin not found: {pin_id}")

    result_lines = [f"# {pin.content}\n\n"]
    result_lines.append(f"**Id:** `{pin.id}`\n")
    result_lines.append(f"**Source:** `{_location(pin)}`\n")
    result_lines.append(f"**File modified:** {_format_mtime(pin.timestamp)}\n")
    if pin.tags:
        result_lines.append(f"**Tags:** {', '.join(pin.tags)}\n")
    if pin.org_headline:
        result_lines.append(f"**Headline:** `{pin.org_headline}`\n")

    if pin.org_timestamps:
        result_lines.append("\n## Timestamps\n\n")
        for ts in pin.org_timestamps:
            entry = f"- {ts.type}: {ts.original_text}"
            if ts.start_date:
                entry += f" (starts {ts.start_date.isoformat()}"
                if ts.end_date:
                    entry += f", ends {ts.end_date.isoformat()}"
                entry += ")"
            result_lines.append(entry + "\n")

    result_lines.append("\n---\n\n")
    result_lines.append(pin.detailed_content or "_No details._")
    result_lines.append("\n")

    return "".join(result_lines)


def register_resources(mcp, indexer: PinIndexer):
    """Register all resources with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        indexer: PinIndexer holding the published pins
    """

    @mcp.resource("espresso://pins")
    def list_pins():
        """List all pins in display order."""
        return get_pins_resource(indexer)

    @mcp.resource("espresso://pins/{pin_id}")
    def pin_detail(pin_id: str):
        """Get the detail view of a single pin."""
        return get_pin_detail_resource(indexer, pin_id)
