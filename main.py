"""
HTTP server entry point.

Serves the chat, call and payment API plus the voice-dialog endpoints the
telephony provider calls back into. Supports the server and an offline
console mode for development.

Usage:
    Server:       python main.py
    Console mode: python main.py console [--scenario counter]
"""

import logging
import sys

from negotiator.config import settings

logger = logging.getLogger(__name__)


def _run_server_mode() -> None:
    """Start the API server with uvicorn."""
    import uvicorn

    from negotiator.api import create_app

    logger.info("Starting %s (public URL %s)", settings.app_name,
                settings.telephony.public_base_url)
    uvicorn.run(create_app(), host=settings.server_host, port=settings.server_port,
                log_level=settings.log_level.lower())


def _run_console_mode(argv: list[str]) -> None:
    """Start the offline console demo (no telephony credentials required)."""
    from console_demo import main as console_main

    console_main(argv)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode(sys.argv[2:])
    else:
        _run_server_mode()
