# ============================================================
# database.py — Moteur SQLModel et sessions
# ------------------------------------------------------------
# Le moteur est créé au premier usage, une seule fois, même si
# plusieurs requêtes arrivent en même temps au démarrage : tous
# les appelants passent par le même verrou et récupèrent le même
# moteur. La création des tables suit le même principe.
# ============================================================
import threading

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import settings
from logger import get_logger, log_info

logger = get_logger("database")

_engine = None
_tables_ready = False
_init_lock = threading.Lock()


def _build_engine(url: str):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # base en mémoire : une seule connexion partagée
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


def get_engine():
    global _engine
    if _engine is None:
        with _init_lock:
            if _engine is None:
                _engine = _build_engine(settings.DATABASE_URL)
                log_info(logger, "engine created", dialect=_engine.dialect.name)
    return _engine


def init_db():
    """Crée les tables une seule fois (idempotent, sûr en concurrence)."""
    global _tables_ready
    engine = get_engine()
    if _tables_ready:
        return engine
    with _init_lock:
        if not _tables_ready:
            import models  # noqa: F401  (enregistre les tables)
            SQLModel.metadata.create_all(engine)
            _tables_ready = True
    return engine


# Dépendance FastAPI : une Session par requête, fermée automatiquement
def get_session():
    with Session(get_engine()) as s:
        yield s
