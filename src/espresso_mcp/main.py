"""Main entry point for espressomcp MCP server."""

import argparse
import logging
import sys

from fastmcp import FastMCP

from espresso_mcp.auth import get_auth_provider
from espresso_mcp.config import Config
from espresso_mcp.indexer import PinIndexer
from espresso_mcp.resources import register_resources
from espresso_mcp.settings import SettingsStore
from espresso_mcp.sync import SyncManager
from espresso_mcp.tools import register_tools

logger = logging.getLogger(__name__)


def create_indexer(config: Config, settings: SettingsStore) -> PinIndexer:
    """Create the indexer, load its cache and set the org directories.

    ESPRESSO_ORG_DIRS takes precedence over the directories saved in settings.
    Setting the directories runs the first scan.
    """
    indexer = PinIndexer(
        cache_path=config.cache_path,
        order_provider=settings.get_pin_order,
        max_file_size_mb=config.max_file_size_mb,
    )
    indexer.initialize()

    directories = config.org_directories or settings.get_org_directories()
    if directories:
        indexer.set_root_directories(directories)
        logger.info("Loaded %d org directories", len(directories))
    else:
        logger.info("No org directories configured yet")
    return indexer


def create_server(
    config: Config,
    indexer: PinIndexer | None = None,
    settings: SettingsStore | None = None,
) -> FastMCP:
    """Create and configure the MCP server with all components.

    Args:
        config: Configuration instance with all settings.
        indexer: Optional pre-built indexer (created from config if omitted).
        settings: Optional settings store (created from config if omitted).
    """
    auth_provider = get_auth_provider(config)

    mcp = FastMCP(
        name="espressoMCP",
        instructions=(
            "espressoMCP exposes the headlines a user pinned in their org-mode files "
            "(via a :pinned: tag or a PINNED property). Use get_pins to read them in "
            "display order, refresh_pins after editing files, and remove_pin to unpin."
        ),
        auth=auth_provider,
    )

    if settings is None:
        logger.info("Loading settings from %s", config.settings_path)
        settings = SettingsStore(config.settings_path)

    if indexer is None:
        logger.info("Initializing pin cache at %s", config.cache_path)
        indexer = create_indexer(config, settings)

    logger.info("Registering resources...")
    register_resources(mcp, indexer)

    logger.info("Registering tools...")
    register_tools(mcp, config, indexer, settings)

    logger.info("Server configured successfully")
    return mcp


def main() -> None:
    """Main function - starts the MCP server."""
    # Configure logging here to avoid side effects on import
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(
        description="espressoMCP - MCP server for pinned org-mode headlines"
    )
    parser.add_argument(
        "--full-scan",
        action="store_true",
        help="Clear the pin cache and re-parse every org file before starting",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Run in read-only mode (disable tools that edit files or settings)",
    )
    args = parser.parse_args()

    config = Config.from_env(read_only_override=args.read_only if args.read_only else None)

    logger.info("=" * 50)
    logger.info("espressoMCP starting...")
    logger.info("  HOME:      %s", config.espresso_home)
    logger.info("  CACHE:     %s", config.cache_path)
    logger.info("  SETTINGS:  %s", config.settings_path)
    logger.info("  PORT:      %s", config.port)
    logger.info("  AUTH:      %s", "enabled" if config.auth_token else "disabled")
    logger.info("  READ_ONLY: %s", config.read_only)
    logger.info("  SYNC:      %s", f"every {config.sync_interval}s" if config.sync_interval else "disabled")
    logger.info("=" * 50)

    settings = SettingsStore(config.settings_path)
    indexer = create_indexer(config, settings)

    if args.full_scan:
        logger.info("Full scan requested...")
        result = indexer.trigger_full_scan()
        logger.info("Full scan complete: %d pins found", result.pinned_items)

    sync_manager: SyncManager | None = None
    if config.sync_interval:
        sync_manager = SyncManager(indexer, config.sync_interval)
        sync_manager.start()

    try:
        mcp = create_server(config, indexer=indexer, settings=settings)
        logger.info("Starting MCP server on port %s...", config.port)
        mcp.run(transport="sse", host="0.0.0.0", port=config.port)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Server error")
        sys.exit(1)
    finally:
        if sync_manager is not None:
            sync_manager.stop()
        indexer.shutdown()


if __name__ == "__main__":
    main()
