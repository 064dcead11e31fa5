"""MCP tools for espressoMCP server.

This module defines the tools exposed by the MCP server:
- get_pins / refresh_pins: Read the ordered pin set
- trigger_incremental_scan / trigger_full_scan: Rescan the org directories
- get_scan_progress / get_scan_stats: Inspect scanning
- get_org_directories / set_org_directories: Manage scanned roots
- reorder_pins: Save a custom display order
- remove_pin: Unpin a headline by editing its org file
- search_headlines: Find headlines by title or tag
- inspect_org_file: Validate one org file and report its statistics
"""

import logging

from fastmcp import FastMCP

from espresso_mcp.auth import require_writable
from espresso_mcp.config import Config
from espresso_mcp.indexer import PinIndexer
from espresso_mcp.settings import SettingsStore

logger = logging.getLogger(__name__)


def register_tools(
    mcp: FastMCP,
    config: Config,
    indexer: PinIndexer,
    settings: SettingsStore,
) -> None:
    """Register all tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        config: Config instance (read-only mode)
        indexer: PinIndexer holding the published pins
        settings: SettingsStore persisting directories and pin order
    """

    def _pins() -> list[dict]:
        return [pin.to_dict() for pin in indexer.get_current_pins()]

    @mcp.tool()
    def get_pins() -> list[dict]:
        """Get all pinned org headlines in display order.

        Returns:
            List of pins with:
            - id: Stable id (org-<file>-<line>)
            - content: Headline title
            - filePath / lineNumber: Where the headline lives
            - timestamp: Source file modification time (epoch ms)
            - tags, detailedContent, orgTimestamps: Detail view fields
            - sortOrder: Position in the display order
        """
        return _pins()

    @mcp.tool()
    def refresh_pins() -> list[dict]:
        """Scan org directories for changes and return the updated pins."""
        result = indexer.trigger_scan()
        logger.info("Refresh complete: %d pins found", result.pinned_items)
        return _pins()

    @mcp.tool()
    def trigger_incremental_scan() -> dict:
        """Re-parse only org files modified since the last scan.

        Returns:
            Scan result with totalFiles, processedFiles, pinnedItems, errors,
            and scanTime (ms).
        """
        return indexer.trigger_incremental_scan().to_dict()

    @mcp.tool()
    def trigger_full_scan() -> dict:
        """Clear the cache and re-parse every org file.

        Returns:
            Scan result with totalFiles, processedFiles, pinnedItems, errors,
            and scanTime (ms).
        """
        return indexer.trigger_full_scan().to_dict()

    @mcp.tool()
    def get_scan_progress() -> dict:
        """Get progress of the running (or last) scan."""
        progress = indexer.get_scan_progress()
        return {
            "isScanning": progress.is_scanning,
            "totalFiles": progress.total_files,
            "processedFiles": progress.processed_files,
            "currentFile": progress.current_file,
            "isComplete": progress.is_complete,
        }

    @mcp.tool()
    def get_scan_stats() -> dict:
        """Get directory, cache, and last scan statistics."""
        return indexer.get_stats()

    @mcp.tool()
    def get_org_directories() -> list[str]:
        """Get the org directories saved in settings."""
        return settings.get_org_directories()

    @mcp.tool()
    def set_org_directories(directories: list[str]) -> dict:
        """Set the directories to scan for org files.

        Invalid directories are reported and not scanned. A scan starts
        immediately when at least one directory is valid.

        Args:
            directories: Absolute directory paths

        Returns:
            Dict with valid directories and invalid ones with a reason
        """
        require_writable(config, "change org directories")
        settings.set_org_directories(directories)
        validation = indexer.set_root_directories(directories)
        return {
            "valid": validation.valid,
            "invalid": [{"path": path, "error": reason} for path, reason in validation.invalid],
        }

    @mcp.tool()
    def reorder_pins(pin_ids: list[str]) -> list[dict]:
        """Save a custom display order for pins.

        Pins not listed keep their relative order after the listed ones.

        Args:
            pin_ids: Pin ids in the desired order

        Returns:
            Pins in the new order
        """
        require_writable(config, "reorder pins")
        settings.set_pin_order(pin_ids)
        indexer.reorder_pins(pin_ids)
        return _pins()

    @mcp.tool()
    def remove_pin(pin_id: str) -> dict:
        """Unpin a headline by removing its pinned tag or property.

        Args:
            pin_id: Id of the pin to remove

        Returns:
            Dict with status, pin id, file path, and whether the file changed
        """
        require_writable(config, "remove pins")
        result = indexer.remove_pin(pin_id)
        return {
            "status": "removed",
            "pin_id": result.pin_id,
            "file_path": result.file_path,
            "file_modified": result.file_modified,
        }

    @mcp.tool()
    def search_headlines(term: str, pinned_only: bool = False) -> list[dict]:
        """Find headlines whose title or tags contain a term.

        Args:
            term: Case-insensitive text to look for
            pinned_only: Only return headlines that are pinned

        Returns:
            List of matches with id, filePath, lineNumber, preview, tags,
            and pinned
        """
        return [match.to_dict() for match in indexer.search_headlines(term, pinned_only)]

    @mcp.tool()
    def inspect_org_file(file_path: str) -> dict:
        """Check an org file for problems and count its headlines.

        Args:
            file_path: Path of an org file inside one of the org directories

        Returns:
            Dict with is_valid, errors, warnings, stats (or null when the file
            cannot be read), and the resolved path
        """
        return indexer.inspect_file(file_path)
