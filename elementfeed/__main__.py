"""Standalone worker process.

Usage:
    python -m elementfeed

    Or via the console script:
    elementfeed-worker

Runs the moderation worker pool, the hourly trending job and the cache purge
job until SIGINT/SIGTERM. Configuration comes from the environment; see
:class:`elementfeed.config.PlatformConfig`.

Environment variables:
    OPENAI_API_KEY: Analysis API key (optional; unset runs on heuristics)
    OPENAI_BUDGET_LIMIT_USD: Spend limit per window (default: 50)
    ELEMENTFEED_LOG_LEVEL: Log level (default: INFO)
"""

import asyncio
import logging
import sys

from .config import PlatformConfig
from .errors import ConfigError
from .service import Platform

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the background worker."""
    try:
        config = PlatformConfig.load()
    except ConfigError as e:
        logging.basicConfig(level=logging.ERROR, stream=sys.stderr)
        logger.error(f"Failed to load platform config: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    # Suppress per-request httpx logging
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger.info(
        "Starting elementfeed worker",
        extra={"max_concurrent_jobs": config.max_concurrent_jobs},
    )

    platform = Platform(config)

    try:
        asyncio.run(platform.run_until_shutdown())
    except KeyboardInterrupt:
        logger.info("Worker interrupted")
    except Exception as e:
        logger.error(f"Worker failed: {e}")
        sys.exit(1)

    logger.info("Worker stopped")


if __name__ == "__main__":
    main()
