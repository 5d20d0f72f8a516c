"""
Flask extensions for the gift card ledger.

``db`` owns the session every ledger service writes through; ``migrate``
wires Alembic to the models in ``giftcards.models``; ``cache`` holds the
persisted options between refreshes.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_caching import Cache
from sqlalchemy import MetaData

# Named constraints so migrations can address uq_gift_cards_code directly
NAMING_CONVENTION = {
    'ix': 'ix_%(column_0_label)s',
    'uq': 'uq_%(table_name)s_%(column_0_name)s',
    'ck': 'ck_%(table_name)s_%(constraint_name)s',
    'fk': 'fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s',
    'pk': 'pk_%(table_name)s',
}

# Database
db = SQLAlchemy(metadata=MetaData(naming_convention=NAMING_CONVENTION))

# Migrations
migrate = Migrate()

# In-process cache (persisted gift card options)
cache = Cache()
