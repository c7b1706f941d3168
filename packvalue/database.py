"""
Acces a la base SQLite des packs et snapshots.

db_path = ":memory:" donne une base en memoire partagee par toutes les
sessions du process (utile pour les essais en ligne de commande).
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .models import Base
from .config import get_config, AppConfig, DatabaseConfig

MEMORY_PATH = ":memory:"

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def _is_memory(db_config: DatabaseConfig) -> bool:
    return str(db_config.db_path) == MEMORY_PATH


def _build_engine(db_config: DatabaseConfig) -> Engine:
    if _is_memory(db_config):
        engine = create_engine(
            "sqlite://",
            echo=db_config.echo_sql,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_config.db_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            f"sqlite:///{db_config.db_path}",
            echo=db_config.echo_sql,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    file_backed = not _is_memory(db_config)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if file_backed:
            # WAL: le cron peut ecrire pendant une lecture CLI
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()

    return engine


def get_engine(config: Optional[AppConfig] = None) -> Engine:
    """Retourne le moteur SQLAlchemy (singleton)."""
    global _engine

    if _engine is None:
        if config is None:
            config = get_config()
        _engine = _build_engine(config.database)

    return _engine


def get_session_factory(config: Optional[AppConfig] = None) -> sessionmaker:
    """Retourne la factory de sessions."""
    global _SessionLocal

    if _SessionLocal is None:
        # expire_on_commit=False: les objets restent lisibles apres le commit
        _SessionLocal = sessionmaker(
            bind=get_engine(config),
            autoflush=False,
            expire_on_commit=False,
        )

    return _SessionLocal


def init_db(config: Optional[AppConfig] = None) -> None:
    """Cree les tables manquantes."""
    Base.metadata.create_all(bind=get_engine(config))


def reset_db(config: Optional[AppConfig] = None) -> None:
    """Supprime puis recree toutes les tables (DANGER)."""
    engine = get_engine(config)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@contextmanager
def get_session(config: Optional[AppConfig] = None) -> Generator[Session, None, None]:
    """Session transactionnelle: commit en sortie, rollback sur erreur."""
    session = get_session_factory(config)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine() -> None:
    """Oublie le moteur courant (changement de config, tests)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
