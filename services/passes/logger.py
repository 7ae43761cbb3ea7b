# ============================================================
# logger.py — Journalisation du service Passes
# ------------------------------------------------------------
# Un logger "passes.<module>" par module. Les helpers log_info /
# log_error ne lèvent jamais : un problème de log ne doit pas
# faire échouer l'opération en cours.
# ============================================================
import logging
import sys

from settings import LOG_LEVEL

_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"


def setup_logging(level: str = LOG_LEVEL):
    root = logging.getLogger("passes")
    if root.handlers:
        return root
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(level.upper())
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"passes.{name}")


def _render(event: str, fields: dict) -> str:
    if not fields:
        return event
    return event + " " + " ".join(f"{k}={v}" for k, v in fields.items())


def log_info(logger: logging.Logger, event: str, **fields):
    try:
        logger.info(_render(event, fields))
    except Exception:  # noqa: BLE001
        pass


def log_error(logger: logging.Logger, event: str, **fields):
    try:
        logger.error(_render(event, fields))
    except Exception:  # noqa: BLE001
        pass
