"""
espressomcp - MCP server for pinned org-mode headlines.

Scans your org directories, keeps an index of every headline marked pinned
(with a :pinned: tag or a PINNED property), and serves it to any MCP client.

Stack:
- Python + FastMCP
- JSON per-file cache (mtime invalidation)
- YAML settings (org directories, pin order)
- Org files (source of truth)
"""

__version__ = "0.1.0"
__author__ = "macward"
