"""Main indexer that keeps the published pin set in sync with org files."""

import logging
import os
import tempfile
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path

from espresso_mcp.indexer import walker
from espresso_mcp.indexer.cache import FileCache
from espresso_mcp.indexer.editor import unpin_headline
from espresso_mcp.indexer.errors import OutsideRootError, PinLocationError, PinNotFoundError
from espresso_mcp.indexer.models import HeadlineMatch, Pin, ScanProgress, ScanResult
from espresso_mcp.indexer.parser import (
    convert_to_pins,
    extract_preview,
    generate_pin_id,
    get_file_stats,
    is_pinned_headline,
    parse_org_file,
    search_headlines as search_file_headlines,
    validate_org_file,
)
from espresso_mcp.indexer.walker import DirectoryValidation

logger = logging.getLogger(__name__)

OrderProvider = Callable[[], list[str]]
PinsListener = Callable[[list[Pin]], None]


@dataclass(frozen=True)
class RemovePinResult:
    """Outcome of removing a pin."""

    pin_id: str
    file_path: str
    file_modified: bool


def _no_order() -> list[str]:
    return []


def apply_pin_order(pins: list[Pin], order: list[str]) -> list[Pin]:
    """
    Arrange pins according to a persisted id order.

    Pins named in the order come first, at the position of the id's first
    occurrence. Pins missing from the order follow in their incoming
    relative order. Pins sharing an id are all kept, next to each other.
    """
    rank: dict[str, int] = {}
    for position, pin_id in enumerate(order):
        rank.setdefault(pin_id, position)

    listed = sorted((pin for pin in pins if pin.id in rank), key=lambda pin: rank[pin.id])
    ordered = listed + [pin for pin in pins if pin.id not in rank]
    return [replace(pin, sort_order=position) for position, pin in enumerate(ordered)]


def _warn_duplicate_ids(pins: list[Pin]) -> None:
    seen: dict[str, str | None] = {}
    for pin in pins:
        if pin.id in seen:
            logger.warning(
                "Duplicate pin id %s in %s and %s; rename one of the files to tell them apart",
                pin.id,
                seen[pin.id],
                pin.file_path,
            )
        else:
            seen[pin.id] = pin.file_path


def _write_atomic(path: Path, text: str) -> None:
    """Replace a file's content in one step, keeping line endings as given."""
    with tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        dir=path.parent,
        prefix=f".{path.name}.",
        encoding="utf-8",
        newline="",
    ) as tmp:
        tmp.write(text)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    try:
        os.chmod(tmp_path, path.stat().st_mode & 0o7777)
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class PinIndexer:
    """
    Indexer that syncs pinned org headlines into a cached, ordered pin set.

    The org files are always the source of truth. The JSON cache only lets
    unchanged files skip re-parsing.

    Thread Safety:
        Only one scan runs at a time. A scan requested while another is in
        progress is rejected and returns the previous result; requests are
        never queued.
    """

    def __init__(
        self,
        cache_path: Path,
        order_provider: OrderProvider | None = None,
        max_file_size_mb: float = walker.DEFAULT_MAX_FILE_SIZE_MB,
        root_directories: list[str] | None = None,
    ):
        """
        Initialize the indexer.

        Args:
            cache_path: Path to the JSON cache file
            order_provider: Returns the persisted pin id order
            max_file_size_mb: Files above this size are never parsed
            root_directories: Initial roots, used without validation until
                set_root_directories is called
        """
        self.cache = FileCache(cache_path)
        self.max_file_size_mb = max_file_size_mb
        self._order_provider = order_provider or _no_order
        self._root_directories: list[str] = list(root_directories or [])
        self._scan_guard = threading.Lock()
        self._last_result: ScanResult | None = None
        self._pins: list[Pin] = []
        self._progress = ScanProgress()
        self._listeners: list[PinsListener] = []

    def initialize(self) -> None:
        """Load the persisted cache."""
        self.cache.initialize()

    def shutdown(self) -> None:
        """Flush the cache and drop entries for deleted files."""
        logger.info("Shutting down pin indexer")
        self.cache.save_cache()
        self.cache.cleanup_cache()
        self.cache.save_cache()

    # Roots

    def set_root_directories(self, directories: list[str]) -> DirectoryValidation:
        """
        Replace the scanned roots with the valid subset of directories.

        Triggers a scan immediately when at least one root is valid.
        """
        validation = walker.validate_directories(directories)
        for path, reason in validation.invalid:
            logger.warning("Ignoring org directory %s: %s", path, reason)

        self._root_directories = validation.valid
        logger.info("Org directories set: %d valid directories", len(validation.valid))

        if self._root_directories:
            self.trigger_scan()
        return validation

    def get_root_directories(self) -> list[str]:
        return list(self._root_directories)

    # Scanning

    def trigger_scan(self) -> ScanResult:
        """Run an incremental scan unless one is already running."""
        return self._perform_scan(force=False)

    def trigger_incremental_scan(self) -> ScanResult:
        """Re-parse only files modified since they were last cached."""
        return self._perform_scan(force=False)

    def trigger_full_scan(self) -> ScanResult:
        """Clear the cache and re-parse every file."""
        return self._perform_scan(force=True)

    @property
    def is_scanning(self) -> bool:
        return self._scan_guard.locked()

    def _perform_scan(self, force: bool) -> ScanResult:
        if not self._root_directories:
            logger.debug("No org directories configured, skipping scan")
            return ScanResult()

        if not self._scan_guard.acquire(blocking=False):
            logger.info("Scan already in progress, skipping")
            return self._last_result or ScanResult()

        try:
            return self._scan(force)
        except Exception as e:
            logger.exception("Scan failed")
            result = ScanResult(errors=(f"Scan failed: {e}",))
            self._last_result = result
            return result
        finally:
            self._progress.is_scanning = False
            self._progress.is_complete = True
            self._progress.current_file = ""
            self._scan_guard.release()

    def _scan(self, force: bool) -> ScanResult:
        started = time.perf_counter()
        errors: list[str] = []
        logger.info("Starting %s of org files", "full scan" if force else "incremental scan")

        if force:
            self.cache.clear_cache()

        discovered = walker.scan_directories(self._root_directories)
        sized = walker.filter_by_size(discovered, self.max_file_size_mb)
        files = walker.sort_by_modification_date(sized)

        to_parse = files if force else walker.get_files_to_parse(files, self.cache)
        parsed_paths = {str(f.path) for f in to_parse}
        self._progress = ScanProgress(is_scanning=True, total_files=len(to_parse), is_complete=False)

        all_pins: list[Pin] = []
        for position, org_file in enumerate(to_parse, start=1):
            self._progress.processed_files = position
            self._progress.current_file = org_file.filename
            try:
                parsed = parse_org_file(org_file.path)
                pins = convert_to_pins(org_file.path, parsed.pinned_headlines)
            except (OSError, UnicodeDecodeError) as e:
                message = f"Failed to parse {org_file.path}: {e}"
                errors.append(message)
                logger.warning(message)
                all_pins.extend(self.cache.get_cached_pins(org_file.path) or [])
                continue

            self.cache.update_cache(org_file.path, pins, mtime=org_file.mtime)
            all_pins.extend(pins)

        for org_file in files:
            if str(org_file.path) not in parsed_paths:
                all_pins.extend(self.cache.get_cached_pins(org_file.path) or [])

        _warn_duplicate_ids(all_pins)
        all_pins.sort(key=lambda pin: pin.timestamp, reverse=True)
        self.cache.save_cache()

        result = ScanResult(
            total_files=len(files),
            processed_files=len(to_parse),
            pinned_items=len(all_pins),
            errors=tuple(errors),
            scan_time=(time.perf_counter() - started) * 1000,
        )
        self._last_result = result
        self._publish(all_pins)

        logger.info(
            "Scan complete: %d files, %d parsed, %d pins found (%.0fms)",
            result.total_files,
            result.processed_files,
            result.pinned_items,
            result.scan_time,
        )
        return result

    def get_last_result(self) -> ScanResult | None:
        return self._last_result

    def get_scan_progress(self) -> ScanProgress:
        return replace(self._progress, is_scanning=self.is_scanning)

    # Pins

    def subscribe(self, listener: PinsListener) -> Callable[[], None]:
        """
        Register a callback for pin set updates.

        Returns:
            Function that unregisters the callback.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, pins: list[Pin]) -> None:
        self._pins = list(pins)
        ordered = self.get_current_pins()
        for listener in list(self._listeners):
            try:
                listener(ordered)
            except Exception:
                # Listener errors should never break a scan or removal
                logger.exception("Pins listener failed")

    def get_current_pins(self) -> list[Pin]:
        """Return the published pins with the persisted order applied."""
        return apply_pin_order(self._pins, self._order_provider())

    def reorder_pins(self, pin_ids: list[str]) -> list[Pin]:
        """
        Reorder the in-memory pin set.

        Unknown ids are ignored; pins not named keep their relative order
        at the end. Neither the cache nor any file is touched.
        """
        self._pins = apply_pin_order(self._pins, pin_ids)
        return list(self._pins)

    def remove_pin(self, pin_id: str) -> RemovePinResult:
        """
        Unpin a headline by rewriting its source file.

        Raises:
            PinNotFoundError: If the id is not in the published pin set
            PinLocationError: If the pin has no file/line or the line no
                longer exists
            OSError: If the file cannot be read or written
        """
        pin = next((p for p in self._pins if p.id == pin_id), None)
        if pin is None:
            raise PinNotFoundError(f"Pin not found: {pin_id}")
        if not pin.file_path or not pin.line_number:
            raise PinLocationError(f"Pin {pin_id} has no source file or line number")

        path = Path(pin.file_path)
        with open(path, encoding="utf-8", newline="") as f:
            text = f.read()

        new_text, modified = unpin_headline(text, pin.line_number)

        if modified:
            _write_atomic(path, new_text)
            logger.info("Unpinned %s at %s:%d", pin_id, path, pin.line_number)
            self.cache.remove_from_cache(path)
        else:
            logger.warning(
                "No pinned marking found for %s at %s:%d, dropping it from the index",
                pin_id,
                path,
                pin.line_number,
            )

        self._publish([p for p in self._pins if p.id != pin_id])
        if modified:
            self.trigger_incremental_scan()

        return RemovePinResult(pin_id=pin_id, file_path=str(path), file_modified=modified)

    # Headlines

    def search_headlines(self, term: str, pinned_only: bool = False) -> list[HeadlineMatch]:
        """
        Find headlines whose title or tags contain term, pinned or not.

        Files are read directly rather than from the cache, which only
        holds pinned headlines. The size filter still applies.
        """
        files = walker.filter_by_size(
            walker.scan_directories(self._root_directories), self.max_file_size_mb
        )

        matches: list[HeadlineMatch] = []
        for org_file in walker.sort_by_modification_date(files):
            for headline in search_file_headlines(org_file.path, term):
                pinned = is_pinned_headline(headline)
                if pinned_only and not pinned:
                    continue
                matches.append(
                    HeadlineMatch(
                        id=generate_pin_id(org_file.path, headline.line_number),
                        file_path=str(org_file.path),
                        line_number=headline.line_number,
                        preview=extract_preview(headline),
                        tags=list(headline.tags),
                        pinned=pinned,
                    )
                )
        return matches

    def inspect_file(self, file_path: str | Path) -> dict:
        """
        Structural check and size statistics for one org file.

        Raises:
            OutsideRootError: If the file is not under an org directory
        """
        path = Path(file_path).expanduser().absolute()
        resolved = path.resolve()
        if not any(
            resolved.is_relative_to(Path(root).resolve()) for root in self._root_directories
        ):
            raise OutsideRootError(f"{path} is not inside an org directory")

        report = validate_org_file(path)
        try:
            report["stats"] = get_file_stats(path)
        except (OSError, UnicodeDecodeError):
            report["stats"] = None
        report["path"] = str(path)
        return report

    def get_stats(self) -> dict:
        """Roots, scan state, last result, cache and directory statistics."""
        return {
            "directories": self.get_root_directories(),
            "is_scanning": self.is_scanning,
            "last_scan": self._last_result.to_dict() if self._last_result else None,
            "cache": self.cache.get_stats(),
            "scan": (
                walker.get_scan_stats(self._root_directories, self.cache)
                if self._root_directories
                else None
            ),
        }
