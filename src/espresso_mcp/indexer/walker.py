"""File walker for discovering org files under the configured roots."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from espresso_mcp.indexer.cache import FileCache
from espresso_mcp.indexer.models import OrgFile

logger = logging.getLogger(__name__)

ORG_EXTENSION = ".org"

DEFAULT_MAX_FILE_SIZE_MB = 10

# Directory names never descended into (compared lowercase)
SKIP_DIRS = {
    "node_modules",
    "build",
    "dist",
    "target",
    "__pycache__",
    ".git",
    ".svn",
    ".hg",
    "vendor",
    "tmp",
    "temp",
}


@dataclass
class DirectoryValidation:
    """Result of validating root directories."""

    valid: list[str] = field(default_factory=list)
    invalid: list[tuple[str, str]] = field(default_factory=list)  # (path, reason)


def is_org_file(filename: str) -> bool:
    return Path(filename).suffix.lower() == ORG_EXTENSION


def should_skip_directory(dirname: str) -> bool:
    """Check if a directory should be pruned during the walk."""
    if dirname.startswith("."):
        return True
    return dirname.lower() in SKIP_DIRS


def _scan_directory(directory: Path) -> list[OrgFile]:
    """
    Recursively collect org files below a directory.

    Raises:
        OSError: If the directory itself cannot be listed
    """
    org_files: list[OrgFile] = []

    with os.scandir(directory) as entries:
        for entry in sorted(entries, key=lambda e: e.name):
            full_path = Path(entry.path)

            if entry.is_dir(follow_symlinks=False):
                if should_skip_directory(entry.name):
                    continue
                try:
                    org_files.extend(_scan_directory(full_path))
                except OSError as e:
                    logger.warning("Skipping unreadable directory %s: %s", full_path, e)
            elif entry.is_file(follow_symlinks=False) and is_org_file(entry.name):
                try:
                    stat = entry.stat(follow_symlinks=False)
                except OSError as e:
                    logger.warning("Could not stat org file %s: %s", full_path, e)
                    continue
                org_files.append(
                    OrgFile(
                        path=full_path,
                        filename=entry.name,
                        mtime=stat.st_mtime * 1000,
                        size=stat.st_size,
                    )
                )

    return org_files


def scan_directories(directories: list[str] | list[Path]) -> list[OrgFile]:
    """
    Walk every root directory and return the org files found.

    A root that cannot be read is skipped with a warning; the remaining
    roots are still scanned.
    """
    logger.debug("Starting scan of %d directories", len(directories))
    all_files: list[OrgFile] = []

    for directory in directories:
        root = Path(directory).expanduser().absolute()
        if not root.is_dir():
            logger.warning("Skipping root, not a directory: %s", root)
            continue
        try:
            all_files.extend(_scan_directory(root))
        except OSError as e:
            logger.warning("Failed to scan directory %s: %s", root, e)

    logger.debug("Scan complete, found %d org files", len(all_files))
    return all_files


def filter_by_size(
    files: list[OrgFile], max_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB
) -> list[OrgFile]:
    """Drop files larger than max_size_mb so they are never parsed."""
    max_size_bytes = max_size_mb * 1024 * 1024
    filtered = [f for f in files if f.size <= max_size_bytes]

    skipped = len(files) - len(filtered)
    if skipped:
        logger.warning("Skipped %d org files larger than %sMB", skipped, max_size_mb)

    return filtered


def sort_by_modification_date(files: list[OrgFile]) -> list[OrgFile]:
    """Most recently modified first; ties keep their discovery order."""
    return sorted(files, key=lambda f: f.mtime, reverse=True)


def get_files_to_parse(files: list[OrgFile], cache: FileCache) -> list[OrgFile]:
    """Return the files that are new or modified according to the cache."""
    to_parse = [f for f in files if cache.needs_parsing(f.path)]
    logger.debug(
        "Found %d files that need parsing out of %d total", len(to_parse), len(files)
    )
    return to_parse


def validate_directories(directories: list[str] | list[Path]) -> DirectoryValidation:
    """Split directories into valid (existing, readable dirs) and invalid ones."""
    result = DirectoryValidation()

    for directory in directories:
        path = Path(directory).expanduser()
        try:
            if not path.exists():
                result.invalid.append((str(directory), "Directory does not exist"))
            elif not path.is_dir():
                result.invalid.append((str(directory), "Not a directory"))
            elif not os.access(path, os.R_OK | os.X_OK):
                result.invalid.append((str(directory), "Permission denied"))
            else:
                result.valid.append(str(path.absolute()))
        except OSError as e:
            result.invalid.append((str(directory), str(e)))

    return result


def get_scan_stats(directories: list[str], cache: FileCache) -> dict:
    """Summarize the org files under the roots along with cache stats."""
    org_files = scan_directories(directories)

    largest: OrgFile | None = None
    for org_file in org_files:
        if largest is None or org_file.size > largest.size:
            largest = org_file

    return {
        "total_directories": len(directories),
        "total_files": len(org_files),
        "total_size": sum(f.size for f in org_files),
        "largest_file": (
            {"path": str(largest.path), "size": largest.size} if largest else None
        ),
        "cache_stats": cache.get_stats(),
    }
