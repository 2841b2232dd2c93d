#!/usr/bin/env python3
"""
Start the Carousel Studio server.
"""

import logging

import uvicorn
from carousel_studio.config import get_settings
from carousel_studio.logging_config import setup_logging

settings = get_settings()
logger = logging.getLogger("carousel_studio.run")

if __name__ == "__main__":
    setup_logging(settings.log_level)
    logger.info(f"Starting server at http://{settings.host}:{settings.port}")
    logger.info(f"API Docs: http://localhost:{settings.port}/docs")

    uvicorn.run(
        "carousel_studio.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
