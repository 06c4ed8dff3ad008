"""
Database - Engine construction, connectivity checks and schema management
"""

import logging
from typing import Optional
from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

import config
from core.errors import SeedConnectionError
from models.tables import Base

def build_database_url() -> URL:
    """Build the connection URL from DATABASE_URL or the DB_* settings."""
    if config.DATABASE_URL:
        return make_url(config.DATABASE_URL)
    return URL.create(
        "postgresql+psycopg2",
        username=config.DB_USER,
        password=config.DB_PASS or None,
        host=config.DB_HOST,
        port=config.DB_PORT,
        database=config.DB_NAME,
    )

def create_db_engine(url=None, connect_timeout: Optional[float] = None) -> Engine:
    """Create an engine with connection-acquisition timeouts applied."""
    url = make_url(url) if url is not None else build_database_url()
    timeout = config.DB_CONNECT_TIMEOUT if connect_timeout is None else connect_timeout

    kwargs = {"pool_pre_ping": True}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"timeout": timeout}
    else:
        # connect_timeout is whole seconds for libpq
        kwargs["connect_args"] = {"connect_timeout": max(1, int(round(timeout)))}
        kwargs["pool_size"] = 1
        kwargs["max_overflow"] = 0
        kwargs["pool_timeout"] = timeout

    engine = create_engine(url, **kwargs)

    if url.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        event.listen(engine, "begin", _begin_sqlite_transaction)

    logging.debug(f"Created engine for {url.render_as_string(hide_password=True)}")
    return engine

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # pysqlite's own BEGIN handling is switched off so SAVEPOINTs nest inside our transaction
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def _begin_sqlite_transaction(conn):
    conn.exec_driver_sql("BEGIN")

def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

def verify_connection(engine: Engine) -> None:
    """Open one connection and run a trivial query, or raise SeedConnectionError."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise SeedConnectionError(
            f"Cannot connect to {engine.url.render_as_string(hide_password=True)}: {e}"
        ) from e
    logging.info(f"Connected to database {engine.url.database}")

def schema_exists(engine: Engine) -> bool:
    """True when every seeder table is present."""
    existing = set(inspect(engine).get_table_names())
    return set(Base.metadata.tables).issubset(existing)

def init_schema(engine: Engine, reset: bool = False) -> None:
    """Create all tables and indexes; drop them first when reset is set."""
    if reset:
        logging.warning("Dropping seeder tables...")
        Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logging.info(f"Schema ready: {', '.join(sorted(Base.metadata.tables))}")
