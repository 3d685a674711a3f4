"""
Start the StackRank API server.

Usage:
    python -m stackrank
    python -m stackrank --reload
    stackrank --port 8080
"""

import argparse
from typing import Optional, Sequence

import uvicorn

from stackrank.core.config import settings
from stackrank.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Run the FastAPI application under uvicorn."""
    parser = argparse.ArgumentParser(description="Run the StackRank API")
    parser.add_argument("--host", default=settings.api_host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args(argv)

    setup_logging()
    logger.info(f"Starting server on {args.host}:{args.port} (reload={args.reload})")

    uvicorn.run(
        "stackrank.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
