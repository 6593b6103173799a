"""
Voice Clone API - Command-line entry point

Loads .env, configures logging and serves the FastAPI app with uvicorn.
"""

import argparse
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Voice model training and conversion API backed by the RVC toolkit"
    )

    parser.add_argument(
        '--host',
        type=str,
        default=None,
        help='Bind address (default: HOST or 0.0.0.0)'
    )

    parser.add_argument(
        '--port',
        type=int,
        default=None,
        help='HTTP port (default: PORT or 3000)'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Logging level (default: LOG_LEVEL or INFO)'
    )

    parser.add_argument(
        '--reload',
        action='store_true',
        help='Reload on code changes (development only)'
    )

    return parser


def main(argv: Optional[List[str]] = None):
    # .env must be loaded before settings are read
    load_dotenv()

    import uvicorn

    from voice_clone.core.config import settings
    from voice_clone.core.logging import setup_logging, silence_noisy_loggers

    args = build_parser().parse_args(argv)

    log_level = args.log_level or settings.log_level
    setup_logging(log_level)
    silence_noisy_loggers()
    logger = logging.getLogger(__name__)

    host = args.host or settings.host
    port = args.port or settings.port

    logger.info(f"Voice Clone API running on {host}:{port}")
    logger.info(f"Health check: http://{host}:{port}/health")

    uvicorn.run(
        "voice_clone.main:app",
        host=host,
        port=port,
        reload=args.reload or settings.debug,
        workers=1,  # Job state is in-memory, one process only
        log_level=log_level.lower(),
        log_config=None,  # Keep the handlers installed by setup_logging
    )


if __name__ == "__main__":
    sys.exit(main())
