from sqlalchemy import create_engine, event, make_url
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from oficina.config import settings


def build_engine(url: str) -> Engine:
    """Create an engine for ``url``.

    pysqlite defers BEGIN on its own and breaks SAVEPOINT handling, so SQLite
    engines take over transaction demarcation themselves.
    """
    if make_url(url).get_backend_name() != "sqlite":
        return create_engine(url)

    engine = create_engine(url, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine)


class Base(DeclarativeBase):
    pass
