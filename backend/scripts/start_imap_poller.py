#!/usr/bin/env python3
"""IMAP Poller Startup Script for Tool Tracker.

Reads tracker mail from an IMAP mailbox instead of receiving it over SMTP,
and serves the HTTP view. Ctrl+C stops both.

Usage:
    python scripts/start_imap_poller.py

Environment Variables (see tooltracker.config.Settings):
    IMAP_HOST, IMAP_PORT, IMAP_USER, IMAP_MAILBOX: Mailbox to read
    IMAP_PASSWORD: Password login; when unset, XOAUTH2 is used
    IMAP_TOKEN_CMD: JSON list, command printing an OAuth2 access token
    IMAP_POLL_INTERVAL: Seconds between polls (default: 60)
    RETRY_INTERVAL: Seconds to wait after connection errors (default: 300)
"""

import logging
import os
import sys
import threading

import uvicorn

# Add backend/src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tooltracker.config import get_settings
from tooltracker.infrastructure.ingest.imap_poller import ImapPoller
from tooltracker.main import create_app
from tooltracker.observability.logging_config import configure_logging
from tooltracker.wiring import build_mail_session, open_store

logger = logging.getLogger(__name__)


def main():
    """Start the IMAP poller thread and the HTTP view."""
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    logger.info("=== Tool Tracker IMAP Poller Starting ===")
    logger.info(f"IMAP: {settings.IMAP_USER}@{settings.IMAP_HOST}:{settings.IMAP_PORT}/{settings.IMAP_MAILBOX}")

    session_factory = open_store(settings)
    poller = ImapPoller(
        mail_session=build_mail_session(settings, session_factory),
        host=settings.IMAP_HOST,
        port=settings.IMAP_PORT,
        user=settings.IMAP_USER,
        mailbox=settings.IMAP_MAILBOX,
        token_command=settings.IMAP_TOKEN_CMD,
        password=settings.IMAP_PASSWORD,
        max_message_bytes=settings.MAX_MESSAGE_BYTES,
        poll_interval=settings.IMAP_POLL_INTERVAL,
        retry_interval=settings.RETRY_INTERVAL,
    )

    shutdown = threading.Event()
    poller_thread = threading.Thread(target=poller.run, args=(shutdown,), name="imap-poller")
    poller_thread.start()

    http_server = uvicorn.Server(uvicorn.Config(
        create_app(settings, session_factory),
        host=settings.LISTEN_HOST,
        port=settings.HTTP_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    ))
    try:
        # uvicorn handles SIGINT/SIGTERM and returns from run()
        http_server.run()
    finally:
        logger.info("Stopping IMAP poller...")
        shutdown.set()
        poller_thread.join()


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, exiting")
        sys.exit(0)
    except Exception as e:
        logger.error(f"IMAP poller failed: {e}", exc_info=True)
        sys.exit(1)
