from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from wooffy_api.core.config import settings

engine_kwargs: dict[str, object] = {
    # Detect and recover from stale pooled connections.
    "pool_pre_ping": True,
}

if not settings.database_url.lower().startswith("sqlite"):
    # Tune SQLAlchemy pool for networked databases (e.g., Supabase/Postgres).
    engine_kwargs.update(
        {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_timeout": settings.db_pool_timeout_seconds,
            "pool_recycle": settings.db_pool_recycle_seconds,
        }
    )

engine = create_engine(settings.database_url, **engine_kwargs)


def configure_sqlite_engine(target: Engine) -> None:
    if target.dialect.name != "sqlite":
        return

    @event.listens_for(target, "connect")
    def _on_connect(dbapi_connection, _connection_record):
        # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        # SQLite ignores ON DELETE CASCADE unless asked per connection.
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(target, "begin")
    def _on_begin(connection):
        connection.exec_driver_sql("BEGIN")


configure_sqlite_engine(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
