"""
Active-record style models over SQLAlchemy Core.

A :class:`Model` is bound to one table and offers ``find``, ``find_by_id``,
``insert``, ``update``, ``upsert``, ``remove`` and ``count`` with optional
before/after hooks around writes.
"""

from .database import Connection, create_connection
from .errors import ConfigurationError, FormatError, MissingIdentifierError, ModelError
from .joins import EqualityJoin, RawJoin, coerce_join
from .model import Model, ModelOptions
from .query import QueryBuilder

__all__ = [
    "Connection",
    "create_connection",
    "ConfigurationError",
    "FormatError",
    "MissingIdentifierError",
    "ModelError",
    "EqualityJoin",
    "RawJoin",
    "coerce_join",
    "Model",
    "ModelOptions",
    "QueryBuilder",
]
