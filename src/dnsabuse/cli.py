"""Command-line entry point: ``dnsabuse [--config FILE ...]``."""

from __future__ import annotations

import argparse
from pathlib import Path

from dnsabuse import __version__
from dnsabuse.app import Application
from dnsabuse.config import DEFAULT_CONFIG_FILE, ConfigError, load_config
from dnsabuse.logging import Logger, setup_logging


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser of the ``dnsabuse`` command."""
    parser = argparse.ArgumentParser(
        prog="dnsabuse",
        description="Serve useless but fun facts over DNS.",
    )
    parser.add_argument(
        "-c",
        "--config",
        action="append",
        dest="configs",
        metavar="FILE",
        help=f"TOML config file; repeat to layer files (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="console log level (default: INFO)",
    )
    parser.add_argument("--log-file", metavar="FILE", help="also append log lines to FILE")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the server and return the process exit status."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    logger = Logger()
    paths = [Path(p) for p in args.configs or [DEFAULT_CONFIG_FILE]]
    try:
        config = load_config(paths, logger=logger)
        application = Application(config, logger=logger)
        application.boot()
        for line in application.boot_log:
            logger.debug(line, source="server")
        return application.serve_forever()
    except (ConfigError, OSError) as e:
        logger.error(str(e), source="server")
        return 1
