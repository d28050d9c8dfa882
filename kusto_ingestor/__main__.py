"""Run the ingestor: ``python -m kusto_ingestor [--config appsettings.json]``."""

import argparse
import asyncio
import sys
from typing import List, Optional

import uvloop

from kusto_ingestor.common.error_codes import ConfigurationError
from kusto_ingestor.config import load_settings
from kusto_ingestor.constants import CONFIG_FILE_PATH, LOG_LEVEL
from kusto_ingestor.observability.logger_adaptor import configure_logging, get_logger
from kusto_ingestor.worker import IngestorWorker

logger = get_logger(__name__)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Drain object storage directories into Kusto tables."
    )
    parser.add_argument(
        "--config",
        default=CONFIG_FILE_PATH,
        help="Path to appsettings.json (default: %(default)s).",
    )
    parser.add_argument(
        "--environment",
        default=None,
        help="Environment name used to find appsettings.{environment}.json.",
    )
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    configure_logging(args.log_level.upper())

    try:
        settings = load_settings(args.config, args.environment)
    except ConfigurationError as e:
        logger.error(f"Unable to load settings: {e}")
        return 1

    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    asyncio.run(IngestorWorker(settings).run())
    return 0


if __name__ == "__main__":
    sys.exit(main())
