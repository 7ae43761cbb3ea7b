# ============================================================
# reconciler.py — Expiration des passes
# ------------------------------------------------------------
# Passe à "expired" tous les passes encore "active" dont la date
# de fin est dépassée, soit pour un appareil (lecture de la liste
# des passes), soit pour toute la base (endpoint admin / thread).
#
# Chaque pass est traité indépendamment (update conditionnel par
# id + commit) : un échec est noté dans le rapport, les succès ne
# sont pas annulés. Au-delà de EXPIRY_BATCH_TIMEOUT secondes, les
# passes restants ne sont plus tentés.
# ============================================================
import threading
import time
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

import settings
from access import AccessDecision, Allow, AllowWithFilter
from database import get_engine
from logger import get_logger, log_error, log_info
from models import ExpiryDetail, ExpiryReport
from publisher import publish_event
from repository import PassRepository
from rules import as_utc, utc_now

logger = get_logger("reconciler")


def expire_passes(s: Session, device_id: Optional[int] = None, now: Optional[datetime] = None,
                  timeout: Optional[float] = None, device_ids: Optional[Iterable[int]] = None) -> ExpiryReport:
    now = as_utc(now) if now else utc_now()
    timeout = settings.EXPIRY_BATCH_TIMEOUT if timeout is None else timeout
    deadline = time.monotonic() + timeout

    repo = PassRepository(s)
    ids = repo.find_expirable_ids(now, device_id=device_id, device_ids=device_ids)
    report = ExpiryReport()

    for pass_id in ids:
        if time.monotonic() > deadline:
            report.details.append(ExpiryDetail(id=pass_id, success=False, error="timeout"))
            continue
        try:
            changed = repo.expire_if_active(pass_id, now)
        except SQLAlchemyError as e:
            s.rollback()
            log_error(logger, "expire failed", id=pass_id, error=e)
            report.details.append(ExpiryDetail(id=pass_id, success=False, error=str(e)))
            continue
        if not changed:
            # déjà traité par un autre appel entre-temps
            report.details.append(ExpiryDetail(id=pass_id, success=False, error="no longer active"))
            continue
        report.expired += 1
        report.details.append(ExpiryDetail(id=pass_id, success=True))
        publish_event("PassExpired", {"passId": pass_id})

    if ids:
        log_info(logger, "expiry batch done", scope=device_id or "all",
                 candidates=len(ids), expired=report.expired)
    return report


# Expiration limitée au périmètre d'un appelant, avant une lecture.
# Rien à faire pour un périmètre vide.
def expire_in_scope(s: Session, decision: AccessDecision, now: Optional[datetime] = None) -> ExpiryReport:
    if isinstance(decision, Allow):
        return expire_passes(s, now=now)
    if isinstance(decision, AllowWithFilter) and decision.device_ids:
        return expire_passes(s, now=now, device_ids=decision.device_ids)
    return ExpiryReport()


# ------------------------------------------------------------
# Thread d'expiration périodique
# ------------------------------------------------------------
# Même principe qu'un consumer : boucle infinie, une erreur est
# journalisée puis on réessaie au tour suivant.
# ------------------------------------------------------------
def run_sweeper(interval: int):
    while True:
        try:
            with Session(get_engine()) as s:
                expire_passes(s)
        except SQLAlchemyError as e:
            log_error(logger, "sweep failed", error=e)
        time.sleep(interval)


def start_sweeper(interval: int = settings.EXPIRY_SWEEP_INTERVAL):
    if interval <= 0:
        return None
    t = threading.Thread(target=run_sweeper, args=(interval,), daemon=True, name="expiry-sweeper")
    t.start()
    log_info(logger, "sweeper started", interval=interval)
    return t
