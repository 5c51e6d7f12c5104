from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .config import get_config, to_async_uri
from .query import QueryBuilder
from .utils.logging_utils import get_logger, init_logger


class Connection:
    """
    Query entry point bound to an async engine.

    Calling the connection with a table name returns a fresh
    :class:`QueryBuilder` for that table.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    def __call__(self, table_name: str) -> QueryBuilder:
        return QueryBuilder(self.engine, table_name)

    @property
    def dialect(self):
        return self.engine.dialect

    async def dispose(self) -> None:
        await self.engine.dispose()


def create_connection(
    config_name: Optional[str] = None,
    *,
    uri: Optional[str] = None,
    configure_logging: bool = False,
    **engine_options: Any,
) -> Connection:
    """
    Build a :class:`Connection` from a configuration class or an explicit URI.

    ``configure_logging`` applies the configuration's ``LOGGING_*`` settings
    to the shared logger manager first; leave it off when the host
    application owns logging.
    """

    cfg = get_config(config_name)
    if configure_logging:
        init_logger(cfg)

    options = dict(cfg.ENGINE_OPTIONS)
    options.setdefault("echo", cfg.ENGINE_ECHO)
    options.update(engine_options)
    url = to_async_uri(uri) if uri else cfg.DATABASE_URI

    engine = create_async_engine(url, **options)
    get_logger("model").info("Connection created dialect=%s env=%s", engine.dialect.name, cfg.RECORDKIT_ENV)
    return Connection(engine)
