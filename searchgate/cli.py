"""
Command line entry point.

    searchgate CONFIG

Without CONFIG, prints a sample configuration and exits with status 2.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from searchgate.config import dump_config, load_config, sample_config
from searchgate.exceptions import ConfigError, SchemaSyncError
from searchgate.logging_config import get_logger
from searchgate.service import GatewayService, setup_logging

EXIT_CONFIG_ERROR = 1
EXIT_STARTUP_FAILURE = 1
EXIT_MISSING_ARGUMENT = 2
EXIT_CONFIG_NOT_FOUND = 3


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="searchgate",
        description="REST gateway in front of a RediSearch index.",
        epilog="Run without arguments to print an example configuration.",
    )
    parser.add_argument(
        "config",
        nargs="?",
        help="Path to the YAML configuration file",
    )
    return parser.parse_args(argv)


def print_sample_config(stream=None) -> None:
    print(dump_config(sample_config()), file=stream or sys.stdout)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    if not args.config:
        print("Config file path not provided.", file=sys.stderr)
        print("Here is an example configuration to get started:", file=sys.stderr)
        print_sample_config()
        return EXIT_MISSING_ARGUMENT

    config_path = Path(args.config).absolute()
    if not config_path.is_file():
        print(f"Config file {config_path} does not exist", file=sys.stderr)
        return EXIT_CONFIG_NOT_FOUND

    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging()
    logger = get_logger(__name__)

    try:
        GatewayService(config).run()
    except SchemaSyncError as e:
        logger.critical(f"Schema reconciliation failed, refusing to start: {e}")
        return EXIT_STARTUP_FAILURE
    return 0


if __name__ == "__main__":
    sys.exit(main())
