# src/packup/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console REPL
(optionally logged in as PACKUP_CONSOLE_EMAIL).
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import console_login, create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """End the console session and release the stores (no exceptions should escape)."""
    try:
        if state.console_token is not None:
            state.user_store.delete_session(state.console_token)
            state.console_token = None
    except Exception:
        logger.exception("Failed to end the console session.")

    for store in (state.todo_store, state.user_store):
        try:
            store.close()
        except Exception:
            logger.debug("Store close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(settings)

    logger.info("Starting %s (log file %s)...", getattr(settings, "app_name", "packup"), log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    if not settings.console_enabled:
        logger.info("Console disabled (PACKUP_CONSOLE_ENABLED=0); nothing to run.")
        return

    if settings.console_email:
        console_login(state, settings.console_email)

    try:
        run_console_loop(state)
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
