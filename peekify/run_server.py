#!/usr/bin/env python3
"""
Entry point for the Peekify API server.

Usage:
    python peekify/run_server.py

Environment Variables:
    DATABASE_URL (or DATABASE_URL_PROD / DATABASE_URL_STAGING with ENVIRONMENT)
    SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_REDIRECT_URI
    FRONTEND_URL: comma separated CORS origins
    HOST, PORT (default 0.0.0.0:3000)
    SENTRY_DSN, LOGTAIL_SOURCE_TOKEN: optional
"""

import logging as std_logging

import uvicorn
from dotenv import load_dotenv

from app_config import load_config
from utils.logger import get_logger

logger = get_logger(__name__)


def _init_sentry(dsn: str, environment: str) -> None:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_logging = LoggingIntegration(
            level=std_logging.INFO,  # capture >= INFO as breadcrumbs
            event_level=std_logging.ERROR,  # send >= ERROR as full Sentry events
        )
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            send_default_pii=False,
            integrations=[sentry_logging, FastApiIntegration()],
            traces_sample_rate=0.2,
        )
        logger.info("Sentry initialized successfully")
    except Exception as e:
        logger.warning(f"Failed to initialize Sentry (optional): {str(e)}")


def main():
    """Main entry point for the API server."""
    load_dotenv()
    config = load_config()

    if not config.spotify_client_id or not config.spotify_client_secret:
        logger.warning("SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET not set; login will fail")

    if config.sentry_dsn:
        _init_sentry(config.sentry_dsn, config.environment)

    # Reduce noise from http and scheduler libraries
    std_logging.getLogger("httpx").setLevel(std_logging.WARNING)
    std_logging.getLogger("apscheduler.scheduler").setLevel(std_logging.WARNING)
    std_logging.getLogger("apscheduler.executors.default").setLevel(std_logging.WARNING)

    # Imported after load_dotenv so the database URL is visible to db.postgres_db
    from webapp.api import create_webapp_api

    app = create_webapp_api(config)
    logger.info(f"Starting Peekify API on {config.host}:{config.port} (environment={config.environment})")
    uvicorn.run(app, host=config.host, port=config.port, log_level="info")


if __name__ == "__main__":
    main()
