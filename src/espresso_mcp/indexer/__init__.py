"""
Indexer module for espressoMCP.

This module keeps the set of pinned org headlines in sync with the org files
on disk. It is the core component of the system: scanning, parsing, caching,
merging, and the one file edit the server performs (unpinning).
"""

from espresso_mcp.indexer.cache import FileCache
from espresso_mcp.indexer.errors import OutsideRootError, PinLocationError, PinNotFoundError
from espresso_mcp.indexer.indexer import PinIndexer, RemovePinResult, apply_pin_order
from espresso_mcp.indexer.models import (
    CacheEntry,
    Headline,
    HeadlineMatch,
    OrgFile,
    OrgTimestamp,
    Pin,
    ScanProgress,
    ScanResult,
)
from espresso_mcp.indexer.parser import convert_to_pins, parse_org_file, parse_org_text
from espresso_mcp.indexer.walker import DirectoryValidation, scan_directories

__all__ = [
    "CacheEntry",
    "DirectoryValidation",
    "FileCache",
    "Headline",
    "HeadlineMatch",
    "OrgFile",
    "OrgTimestamp",
    "OutsideRootError",
    "Pin",
    "PinIndexer",
    "PinLocationError",
    "PinNotFoundError",
    "RemovePinResult",
    "ScanProgress",
    "ScanResult",
    "apply_pin_order",
    "convert_to_pins",
    "parse_org_file",
    "parse_org_text",
    "scan_directories",
]
