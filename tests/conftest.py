import asyncio

import pytest
from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, create_engine

from recordkit import create_connection

metadata = MetaData()

post_table = Table(
    "post",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(100), nullable=False),
)

user_table = Table(
    "user",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("post_id", Integer, ForeignKey("post.id"), nullable=False),
)

order_table = Table(
    "order",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
)


@pytest.fixture(scope='function')
def database_uri(tmp_path):
    """Create a seeded SQLite database file and return its async URI."""
    path = tmp_path / "recordkit_test.db"
    engine = create_engine(f"sqlite:///{path}")
    try:
        metadata.create_all(engine)
        with engine.begin() as conn:
            conn.execute(post_table.insert().values(title="Some cool title"))
            conn.execute(user_table.insert().values(name="John", post_id=1))
    finally:
        engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture(scope='function')
def run(database_uri):
    """Run ``scenario(connection)`` on a fresh event loop and connection."""
    def _run(scenario):
        async def _main():
            connection = create_connection('testing', uri=database_uri)
            try:
                return await scenario(connection)
            finally:
                await connection.dispose()
        return asyncio.run(_main())
    return _run
