"""
SQLAlchemy Model Registry

This module provides the canonical metadata shared by every model so that
``Base.metadata.create_all`` sees all tables and constraint names stay stable
across database backends.
"""

from sqlalchemy import MetaData

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Create a single metadata instance that all models will share
metadata = MetaData(naming_convention=NAMING_CONVENTION)
