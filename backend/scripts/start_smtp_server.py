#!/usr/bin/env python3
"""SMTP Server Startup Script for Tool Tracker.

Starts the aiosmtpd server receiving tracker mail, and the HTTP view next
to it on the same event loop.

Usage:
    python scripts/start_smtp_server.py

Environment Variables (see tooltracker.config.Settings):
    LISTEN_HOST: Bind address for SMTP and HTTP (default: localhost)
    SMTP_PORT: SMTP listen port (default: 1025)
    HTTP_PORT: HTTP listen port (default: 8123)
    DOMAIN: Server domain, mail is accepted for MAILBOX@DOMAIN
    MAX_MESSAGE_BYTES: Max email size in bytes (default: 1 MiB)
    DATABASE_URL: SQLAlchemy database URL
    DKIM_DOMAIN: Require DKIM signatures from this domain
"""

import asyncio
import logging
import os
import sys

import uvicorn

# Add backend/src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tooltracker.config import get_settings
from tooltracker.infrastructure.ingest.smtp_handler import TrackerSMTPHandler, create_controller
from tooltracker.main import create_app
from tooltracker.observability.logging_config import configure_logging
from tooltracker.wiring import build_mail_session, open_store

logger = logging.getLogger(__name__)


async def main():
    """Start SMTP server and HTTP view."""
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    logger.info("=== Tool Tracker SMTP Server Starting ===")
    logger.info(f"SMTP Bind: {settings.LISTEN_HOST}:{settings.SMTP_PORT}")
    logger.info(f"Max Message Size: {settings.MAX_MESSAGE_BYTES} bytes")

    session_factory = open_store(settings)
    mail_session = build_mail_session(settings, session_factory)

    smtp_handler = TrackerSMTPHandler(
        mail_session=mail_session,
        accept_address=settings.accept_address,
        max_recipients=settings.MAX_RECIPIENTS,
    )
    controller = create_controller(
        smtp_handler,
        hostname=settings.LISTEN_HOST,
        port=settings.SMTP_PORT,
        server_hostname=settings.DOMAIN,
        data_size_limit=settings.MAX_MESSAGE_BYTES,
        read_timeout=settings.SMTP_READ_TIMEOUT,
    )
    controller.start()
    logger.info(f"Accepting emails to: {settings.accept_address}")

    http_server = uvicorn.Server(uvicorn.Config(
        create_app(settings, session_factory),
        host=settings.LISTEN_HOST,
        port=settings.HTTP_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    ))
    try:
        await http_server.serve()
    finally:
        logger.info("Shutting down SMTP server...")
        controller.stop()
        logger.info("SMTP server stopped")


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, exiting")
        sys.exit(0)
    except Exception as e:
        logger.error(f"SMTP server failed: {e}", exc_info=True)
        sys.exit(1)
