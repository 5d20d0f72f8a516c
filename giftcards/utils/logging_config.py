"""
Logging setup for the gift card ledger.

Called once from create_app() before any extension is initialized so that
ledger, scheduler and notification messages share one format.
"""
import os
import sys
import logging

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

# Chatty third-party loggers that drown out ledger messages at INFO
QUIET_LOGGERS = ('apscheduler', 'urllib3', 'python_http_client', 'sqlalchemy.engine')

_configured = False


def setup_logging(level: str = None) -> None:
    """
    Configure root logging to stdout.

    Args:
        level: Log level name (defaults to LOG_LEVEL env var, then INFO)
    """
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(log_level)
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    _configured = True
