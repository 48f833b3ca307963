#!/usr/bin/env python3
"""
Runner for the AI Judge Service.

    python -m adjudicator.run

HOST, PORT and RELOAD come from the environment (see config.py).
"""

import logging

import uvicorn

from adjudicator.config import get_settings

logger = logging.getLogger(__name__)


def main():
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    logger.info(f"Serving on http://{settings.host}:{settings.port} (docs at /docs, health at /api/health)")

    uvicorn.run(
        "adjudicator.api:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
