"""Main entry point for the Capstone Approvals service.

This module provides the main entry point that:
1. Loads and validates configuration
2. Sets up logging
3. Prepares the database
4. Serves the HTTP API until SIGTERM/SIGINT, then releases connections
"""

import asyncio
import logging
import sys
from urllib.parse import urlparse, urlunparse

import uvicorn

from capstone_approvals import __version__
from capstone_approvals.cli.base import load_config_from_cli
from capstone_approvals.config import Settings, set_settings
from capstone_approvals.infra.observability.logging import setup_logging


def sanitize_database_url(url: str) -> str:
    """Sanitize database URL by redacting password.

    Args:
        url: Database URL that may contain credentials

    Returns:
        Sanitized URL with password redacted
    """
    try:
        parsed = urlparse(url)
        if not parsed.password:
            return url
        netloc = f"{parsed.username or ''}:***"
        if parsed.hostname:
            netloc += f"@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))
    except ValueError:
        return "***REDACTED***"


def print_startup_banner(settings: Settings) -> None:  # pragma: no cover
    """Print startup banner with configuration information.

    Args:
        settings: Settings instance
    """
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("Capstone Approvals Service")
    logger.info(f"Version: {__version__}")
    logger.info("=" * 60)
    logger.info("Configuration:")
    logger.info(f"  Environment: {settings.environment}")
    logger.info(f"  Debug: {settings.debug}")
    logger.info(f"  Log Level: {settings.log_level}")
    logger.info(f"  Log Format: {settings.log_format}")
    logger.info("HTTP:")
    logger.info(f"  Bind: {settings.http_host}:{settings.http_port}")
    logger.info(f"  API Prefix: {settings.api_prefix}")
    logger.info(f"  Identity Header: {settings.identity_header}")
    logger.info("Database:")
    logger.info(f"  URL: {sanitize_database_url(settings.database_url)}")
    logger.info(f"  Driver: {settings.database_driver}")
    logger.info(f"  Pool Size: {settings.database_pool_size}")
    logger.info("Approval Workflow:")
    logger.info(f"  Vote Attempts: {settings.vote_max_attempts}")
    logger.info(f"  Action Keys: {', '.join(settings.action_keys)}")
    logger.info("=" * 60)


async def run_server(settings: Settings) -> None:  # pragma: no cover
    """Serve the HTTP API until uvicorn receives a shutdown signal."""
    from capstone_approvals.api.http import create_http_app
    from capstone_approvals.infra.db.session import initialize_session_manager

    logger = logging.getLogger(__name__)

    manager = await initialize_session_manager(settings)
    if settings.environment == "dev":
        await manager.create_all()
        logger.info("Database schema ensured (dev environment)")

    app = create_http_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.http_host,
        port=settings.http_port,
        log_config=None,
        access_log=settings.debug,
    )
    server = uvicorn.Server(config)

    try:
        await server.serve()
    finally:
        await manager.close()
        logger.info("Database connections closed")


def main() -> int:  # pragma: no cover
    """Main entry point for the Capstone Approvals service.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        # Step 1: Load configuration from CLI and environment
        settings = load_config_from_cli()
        set_settings(settings)

        # Step 2: Setup logging
        setup_logging(
            level=settings.log_level,
            json_format=settings.log_format == "json",
        )

        # Step 3: Print startup banner
        print_startup_banner(settings)

        logger = logging.getLogger(__name__)
        logger.info("Configuration validation passed")

        # Step 4: Serve until shutdown
        asyncio.run(run_server(settings))
        return 0

    except KeyboardInterrupt:
        print("\nShutdown requested... exiting", file=sys.stderr)
        return 0
    except Exception as e:
        if "settings" in locals():
            logger = logging.getLogger(__name__)
            logger.exception(f"Fatal error: {e}")
        else:
            print(f"Fatal error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
