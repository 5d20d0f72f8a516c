"""
Configuration management for the gift card ledger.
"""
import os
from dotenv import load_dotenv

from .utils.exceptions import ConfigurationError

load_dotenv()


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ledger defaults (overridden by persisted gift_card_options rows)
    GIFT_CARDS_ENABLE_LOGGING = _env_flag('GIFT_CARDS_ENABLE_LOGGING', 'true')
    GIFT_CARD_VALIDITY_DAYS = int(os.getenv('GIFT_CARD_VALIDITY_DAYS', '365'))
    GIFT_CARD_REMINDER_DAYS_BEFORE_EXPIRY = int(os.getenv('GIFT_CARD_REMINDER_DAYS_BEFORE_EXPIRY', '7'))
    GIFT_CARD_ATTACH_PDF = _env_flag('GIFT_CARD_ATTACH_PDF')
    # Expiry only drives reminders unless this is turned off
    GIFT_CARD_REDEEM_EXPIRED = _env_flag('GIFT_CARD_REDEEM_EXPIRED', 'true')

    # Code generation
    GIFT_CARD_CODE_LENGTH = 10
    GIFT_CARD_CODE_MAX_ATTEMPTS = int(os.getenv('GIFT_CARD_CODE_MAX_ATTEMPTS', '10'))

    # Email delivery (SendGrid)
    SENDGRID_API_KEY = os.getenv('SENDGRID_API_KEY', '')
    GIFT_CARD_FROM_EMAIL = os.getenv('GIFT_CARD_FROM_EMAIL', 'giftcards@example.com')
    SHOP_NAME = os.getenv('SHOP_NAME', 'Our Store')

    # In-process cache (Flask-Caching)
    CACHE_TYPE = 'SimpleCache'
    CACHE_DEFAULT_TIMEOUT = 300
    # Seconds a process keeps persisted options before re-reading them
    GIFT_CARD_OPTIONS_REFRESH_SECONDS = int(os.getenv('GIFT_CARD_OPTIONS_REFRESH_SECONDS', '60'))

    # Host platform account table used to match recipient emails
    GIFT_CARD_USERS_TABLE = os.getenv('GIFT_CARD_USERS_TABLE', 'users')

    # Where batched CSV exports are written
    GIFT_CARD_EXPORT_DIR = os.getenv('GIFT_CARD_EXPORT_DIR', os.path.join(os.getcwd(), 'exports'))


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///giftcards_dev.db'  # SQLite fallback for local dev
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,  # Verify connections before using
    }

    @classmethod
    def validate_database_url(cls) -> str:
        """
        Validate DATABASE_URL in production environment.

        Raises:
            ConfigurationError: If DATABASE_URL is missing or points at SQLite
        """
        if not cls._db_url:
            raise ConfigurationError(
                "CRITICAL: DATABASE_URL environment variable is not set!\n"
                "Production deployments MUST point at a shared relational store."
            )
        if cls._db_url.startswith('sqlite'):
            raise ConfigurationError(
                "CRITICAL: DATABASE_URL points at SQLite in production!\n"
                "Row-level locking on gift_cards.balance needs a server database."
            )
        return cls._db_url


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    GIFT_CARDS_ENABLE_LOGGING = True
    GIFT_CARD_ATTACH_PDF = False
    SENDGRID_API_KEY = ''


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Args:
        config_name: The configuration environment name

    Raises:
        ConfigurationError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_database_url()
