#!/usr/bin/env python3
"""
Live Schema CLI

Compare the declared index schema in a gateway config file with the
engine's live index, without changing anything.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from searchgate.config import load_config
from searchgate.connectors.redisearch import create_client
from searchgate.exceptions import ConfigError, EngineError, SchemaSyncError
from searchgate.json_mapper import to_json
from searchgate.schema_sync import SchemaReconciler


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s:\t%(asctime)s\t%(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Show which declared fields the live index is missing.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Human-readable summary
  python scripts/show_live_schema.py config.yml

  # JSON output
  python scripts/show_live_schema.py config.yml --format json
""",
    )

    parser.add_argument("config", type=str, help="Gateway YAML configuration file")
    parser.add_argument(
        "--format",
        "-f",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )

    return parser.parse_args()


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logger = setup_logging(args.verbose)

    try:
        config = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    host, port = config.redis_address
    engine = create_client(
        config.index, config.prefix, host, port, config.redis_timeout_seconds
    )

    try:
        declared = config.index_schema.fields
        missing = SchemaReconciler(engine, declared).plan()
        exists = engine.index_exists()
        live = sorted(engine.field_names()) if exists else []

        if args.format == "json":
            print(to_json({
                "index": config.index,
                "exists": exists,
                "declared": [f.name for f in declared],
                "live": live,
                "missing": [f.name for f in missing],
                "undeclared": sorted(set(live) - {f.name for f in declared}),
            }, pretty=True))
        else:
            print(f"Index:      {config.index} ({'exists' if exists else 'not created'})")
            print(f"Declared:   {', '.join(f.name for f in declared) or '-'}")
            print(f"Live:       {', '.join(live) or '-'}")
            print(f"Missing:    {', '.join(f.name for f in missing) or '-'}")
        return 0

    except (EngineError, SchemaSyncError) as e:
        logger.error(f"Schema inspection failed: {e}")
        return 1
    finally:
        engine.close()


if __name__ == "__main__":
    sys.exit(main())
