"""Logfire cloud observability initialization and instrumentation."""

import logging
from typing import Optional

import logfire
from fastapi import FastAPI

from pointmarket import __version__
from pointmarket.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings, app: Optional[FastAPI] = None) -> None:
    """
    Initialize Logfire when a token is configured.

    Instruments:
    - FastAPI request handling (when ``app`` is given)
    - Python logging (bridges to Logfire)

    Args:
        settings: Application settings containing Logfire token
        app: FastAPI application to instrument
    """
    if not settings.logfire_token:
        logger.debug("Logfire token not set - observability disabled")
        return

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="pointmarket",
            service_version=__version__,
        )

        if app is not None:
            logfire.instrument_fastapi(app)

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire cloud tracking initialized")

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        # Continue running - observability is optional
