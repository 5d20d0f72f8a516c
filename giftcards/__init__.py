"""
Gift Card Ledger & Redemption Engine
Flask application factory
"""
import os
import logging
from flask import Flask

from .extensions import cache, db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None, **collaborators) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)
        **collaborators: Optional host collaborators passed to the services
            (dispatcher, accounts, order_gateway)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    cache.init_app(app)

    # Import models so metadata is complete for migrations
    from . import models  # noqa: F401

    # Build the gift card services and apply persisted options
    from .services.container import init_services
    services = init_services(app, **collaborators)
    with app.app_context():
        services.settings_service.load_persisted()

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Initialize background scheduler for delivery and reminder emails
    from .utils.scheduler import init_scheduler
    init_scheduler(app)

    logger.info(f'Gift card ledger initialized ({config_name})')
    return app
