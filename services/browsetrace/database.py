# services/browsetrace/database.py

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from config import settings


class Base(DeclarativeBase):
    """Базовый класс моделей SQLAlchemy для browsetrace."""
    pass


def create_db_engine(database_url: str = settings.DATABASE_URL) -> Engine:
    """
    Создаёт движок для однофайловой SQLite-базы.

    На каждом новом соединении включается WAL и ограниченное ожидание
    блокировки: конкурентные писатели встают в очередь, а не падают
    с "database is locked".
    """
    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        future=True,
        connect_args={
            "timeout": settings.DB_BUSY_TIMEOUT_MS / 1000,
            "check_same_thread": False,
        },
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={int(settings.DB_BUSY_TIMEOUT_MS)}")
        cursor.close()

    return engine


# Движок SQLAlchemy
engine = create_db_engine()

# Фабрика сессий
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


def ensure_schema(bind: Engine = engine) -> None:
    """Создаёт таблицу events и все индексы, если их ещё нет."""
    import models  # noqa: F401  регистрирует EventRecord в метаданных

    Base.metadata.create_all(bind=bind)


def get_db():
    """Зависимость FastAPI для получения сессии БД."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
