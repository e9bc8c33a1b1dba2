"""Server command line.

Flags map one-to-one onto ``Settings`` fields and win over a ``--config``
file, which in turn wins over ``CAPSTONE_APPROVALS_*`` environment variables
and built-in defaults.
"""

import argparse
from pathlib import Path

from capstone_approvals import __version__
from capstone_approvals.config import Settings, load_settings_from_file


def create_argument_parser() -> argparse.ArgumentParser:
    """Build the ``capstone-approvals`` argument parser.

    Every override flag defaults to ``argparse.SUPPRESS`` so that only flags
    given on the command line end up in the parsed namespace.
    """
    parser = argparse.ArgumentParser(
        prog="capstone-approvals",
        description="Serve the approval request HTTP API",
        argument_default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--config", "-c", type=Path, default=None, help="YAML or TOML configuration file"
    )
    parser.add_argument(
        "--version", "-v", action="version", version=f"%(prog)s {__version__}"
    )

    runtime = parser.add_argument_group("runtime")
    runtime.add_argument("--environment", choices=["dev", "staging", "prod"])
    runtime.add_argument("--debug", action="store_true")
    runtime.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )
    runtime.add_argument("--log-format", choices=["json", "text"])

    http = parser.add_argument_group("http")
    http.add_argument("--host", dest="http_host", help="bind address")
    http.add_argument("--port", dest="http_port", type=int, help="bind port")

    storage = parser.add_argument_group("storage")
    storage.add_argument("--database-url", help="SQLite or PostgreSQL URL")

    return parser


def load_config_from_cli(args: list[str] | None = None) -> Settings:
    """Resolve settings from ``args`` (``sys.argv[1:]`` when omitted)."""
    overrides = vars(create_argument_parser().parse_args(args))
    config_path = overrides.pop("config")

    settings = load_settings_from_file(config_path) if config_path else Settings()
    if not overrides:
        return settings
    return Settings(**{**settings.model_dump(), **overrides})
