"""Data models for the pin indexer."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

CACHE_VERSION = 1


def _number(data: dict[str, Any], key: str, default: float | None = None) -> float:
    """Read a numeric cache field, rejecting strings, booleans and nulls."""
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Cache field {key!r} must be a number, got {value!r}")
    return value


@dataclass
class OrgFile:
    """An org file discovered during a scan."""

    path: Path  # Absolute path
    filename: str
    mtime: float  # Epoch milliseconds
    size: int  # Bytes


@dataclass
class OrgTimestamp:
    """A timestamp annotation found in a headline or its body."""

    type: str  # active, inactive, scheduled, deadline, range
    datetime: str  # ISO date part, e.g. "2024-01-15"
    original_text: str
    start_date: datetime | None = None
    end_date: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "datetime": self.datetime,
            "originalText": self.original_text,
        }
        if self.start_date is not None:
            data["startDate"] = self.start_date.isoformat()
        if self.end_date is not None:
            data["endDate"] = self.end_date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrgTimestamp":
        start = data.get("startDate")
        end = data.get("endDate")
        return cls(
            type=data["type"],
            datetime=data["datetime"],
            original_text=data.get("originalText", ""),
            start_date=datetime.fromisoformat(start) if start else None,
            end_date=datetime.fromisoformat(end) if end else None,
        )


@dataclass
class Headline:
    """One outline node parsed from an org file."""

    level: int
    title: str
    line_number: int  # 1-based
    content: str  # Raw headline line
    todo: str | None = None
    tags: list[str] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)
    detailed_content: str | None = None
    timestamps: list[OrgTimestamp] = field(default_factory=list)


@dataclass
class Pin:
    """A pinned headline as exposed to clients."""

    id: str
    content: str
    timestamp: float  # Source file mtime, epoch milliseconds
    file_path: str | None = None
    source_file: str | None = None
    line_number: int | None = None
    org_headline: str | None = None
    tags: list[str] = field(default_factory=list)
    detailed_content: str | None = None
    org_timestamps: list[OrgTimestamp] = field(default_factory=list)
    sort_order: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the camelCase keys of the cache file."""
        data: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "lineNumber": self.line_number,
            "timestamp": self.timestamp,
            "tags": list(self.tags),
        }
        if self.file_path is not None:
            data["filePath"] = self.file_path
        if self.source_file is not None:
            data["sourceFile"] = self.source_file
        if self.org_headline is not None:
            data["orgHeadline"] = self.org_headline
        if self.detailed_content is not None:
            data["detailedContent"] = self.detailed_content
        if self.org_timestamps:
            data["orgTimestamps"] = [t.to_dict() for t in self.org_timestamps]
        if self.sort_order is not None:
            data["sortOrder"] = self.sort_order
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], fallback_path: str | None = None) -> "Pin":
        """Build a pin from its cache representation.

        Args:
            data: Pin dict as stored in the cache file
            fallback_path: Path of the owning cache entry, used when the pin
                itself does not record one
        """
        line_number = data.get("lineNumber")
        if line_number is not None and (
            isinstance(line_number, bool) or not isinstance(line_number, int)
        ):
            raise TypeError(f"Cache field 'lineNumber' must be an integer, got {line_number!r}")
        return cls(
            id=data["id"],
            content=data["content"],
            timestamp=_number(data, "timestamp"),
            file_path=data.get("filePath") or fallback_path,
            source_file=data.get("sourceFile") or fallback_path,
            line_number=line_number,
            org_headline=data.get("orgHeadline"),
            tags=list(data.get("tags") or []),
            detailed_content=data.get("detailedContent"),
            org_timestamps=[
                OrgTimestamp.from_dict(t) for t in data.get("orgTimestamps") or []
            ],
            sort_order=data.get("sortOrder"),
        )


@dataclass
class CacheEntry:
    """Per-file cache record."""

    file_path: str
    last_modified: float  # File mtime at last parse, epoch milliseconds
    last_parsed: float  # Wall clock of the parse, epoch milliseconds
    pins: list[Pin] = field(default_factory=list)
    content_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "filePath": self.file_path,
            "lastModified": self.last_modified,
            "lastParsed": self.last_parsed,
            "pins": [pin.to_dict() for pin in self.pins],
        }
        if self.content_hash is not None:
            data["contentHash"] = self.content_hash
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        file_path = data["filePath"]
        return cls(
            file_path=file_path,
            last_modified=_number(data, "lastModified"),
            last_parsed=_number(data, "lastParsed", 0),
            pins=[Pin.from_dict(p, fallback_path=file_path) for p in data.get("pins") or []],
            content_hash=data.get("contentHash"),
        )


@dataclass
class Cache:
    """The full persisted cache structure."""

    version: int = CACHE_VERSION
    last_updated: float = 0.0
    entries: dict[str, CacheEntry] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "lastUpdated": self.last_updated,
            "entries": {path: entry.to_dict() for path, entry in self.entries.items()},
        }


@dataclass
class HeadlineMatch:
    """A headline found by a search across the org directories."""

    id: str  # Pin id the headline has (or would have) when pinned
    file_path: str
    line_number: int
    preview: str
    tags: list[str] = field(default_factory=list)
    pinned: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "filePath": self.file_path,
            "lineNumber": self.line_number,
            "preview": self.preview,
            "tags": list(self.tags),
            "pinned": self.pinned,
        }


@dataclass(frozen=True)
class ScanResult:
    """Outcome of one scan pass."""

    total_files: int = 0
    processed_files: int = 0
    pinned_items: int = 0
    errors: tuple[str, ...] = ()
    scan_time: float = 0.0  # Milliseconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "processedFiles": self.processed_files,
            "pinnedItems": self.pinned_items,
            "errors": list(self.errors),
            "scanTime": round(self.scan_time, 2),
        }


@dataclass
class ScanProgress:
    """Progress of the scan currently running (or the last one)."""

    is_scanning: bool = False
    total_files: int = 0
    processed_files: int = 0
    current_file: str = ""
    is_complete: bool = True
