# ============================================================
# lifecycle.py — Création / modification des passes
# ------------------------------------------------------------
# Chemin d'écriture d'un pass :
#   périmètre d'accès → validation des dates → label
#   → contrôle de chevauchement + écriture (même transaction,
#     sérialisées par appareil)
# Les erreurs métier sont des exceptions ; api.py les traduit
# en codes HTTP.
# ============================================================
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session

from access import Actor, Deny, allows_device, pass_scope, staff_only
from logger import get_logger, log_info
from models import PASS_ACTIVE, PASS_REVOKED, Pass, PassCreate, PassRead, PassUpdate
from publisher import publish_event
from repository import DeviceRepository, PassRepository
from reconciler import expire_passes
from rules import as_utc, check_interval, generate_label, is_currently_valid, to_public, to_storage, utc_now

logger = get_logger("lifecycle")


class PassError(Exception):
    pass


class PassValidationError(PassError):
    pass


class PassOverlapError(PassError):
    pass


class PassNotFound(PassError):
    pass


class PassForbidden(PassError):
    pass


# ------------------------------------------------------------
# Un verrou par appareil (dans le processus). Le verrou de ligne
# SELECT ... FOR UPDATE couvre les autres processus.
# Entrée retirée dès que plus personne ne la détient.
# ------------------------------------------------------------
_locks = {}  # device_id -> [lock, détenteurs]
_locks_guard = threading.Lock()


@contextmanager
def device_lock(device_id: int):
    with _locks_guard:
        entry = _locks.setdefault(device_id, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _locks[device_id]


def _guard_overlap(repo: PassRepository, device_id: int, start: datetime, end: datetime,
                   exclude_id: Optional[int] = None):
    clash = repo.find_overlapping(device_id, start, end, exclude_id=exclude_id)
    if clash is not None:
        log_info(logger, "overlap rejected", device=device_id, clash=clash.id, start=start, end=end)
        raise PassOverlapError("An overlapping active pass already exists for this device.")


def annotate(p: Pass, now: Optional[datetime] = None) -> PassRead:
    return PassRead(
        id=p.id,
        label=p.label,
        device_id=p.device_id,
        start_date=to_public(p.start_date),
        end_date=to_public(p.end_date),
        status=p.status,
        is_currently_valid=is_currently_valid(p.status, p.start_date, p.end_date, now),
        created_at=to_public(p.created_at),
        updated_at=to_public(p.updated_at),
    )


def annotate_all(passes: List[Pass], now: Optional[datetime] = None) -> List[PassRead]:
    now = now or utc_now()
    return [annotate(p, now) for p in passes]


def create_pass(s: Session, actor: Optional[Actor], data: PassCreate,
                now: Optional[datetime] = None) -> Pass:
    decision = pass_scope(s, actor)
    if isinstance(decision, Deny):
        raise PassForbidden(decision.reason)

    devices = DeviceRepository(s)
    if not allows_device(decision, data.device_id) or devices.get(data.device_id) is None:
        raise PassNotFound("device not found")

    start = to_storage(data.start_date)
    end = to_storage(data.end_date)
    label = generate_label()

    reason = check_interval(start, end, is_new=True, now=now)
    if reason:
        raise PassValidationError(reason)

    repo = PassRepository(s)
    with device_lock(data.device_id):
        try:
            devices.lock(data.device_id)
            _guard_overlap(repo, data.device_id, start, end)
            p = repo.add(Pass(label=label, device_id=data.device_id,
                              start_date=start, end_date=end, status=PASS_ACTIVE))
            s.commit()
        except Exception:
            s.rollback()
            raise
    s.refresh(p)

    log_info(logger, "pass created", id=p.id, device=p.device_id, actor=actor.id)
    publish_event("PassCreated", {
        "passId": p.id,
        "deviceId": p.device_id,
        "start": to_public(p.start_date).isoformat(),
        "end": to_public(p.end_date).isoformat(),
    })
    return p


# ------------------------------------------------------------
# Modification (admin / security)
# ------------------------------------------------------------
# - corrections de dates : end > start revérifié, mais pas la
#   règle "start >= aujourd'hui"
# - statut : seule transition manuelle permise active → revoked
# - chevauchement contrôlé si le pass reste actif, en excluant
#   le pass lui-même
# Le pass est relu (verrouillé) une fois l'appareil verrouillé :
# la transition est validée sur l'état courant, pas sur celui lu
# avant d'obtenir le verrou.
# ------------------------------------------------------------
def update_pass(s: Session, actor: Optional[Actor], pass_id: int, data: PassUpdate,
                now: Optional[datetime] = None) -> Pass:
    decision = staff_only(actor)
    if isinstance(decision, Deny):
        raise PassForbidden(decision.reason)

    repo = PassRepository(s)
    p = repo.get(pass_id)
    if p is None:
        raise PassNotFound("pass not found")

    revoking = False
    with device_lock(p.device_id):
        try:
            DeviceRepository(s).lock(p.device_id)
            s.refresh(p, with_for_update=True)

            start = to_storage(data.start_date) if data.start_date is not None else as_utc(p.start_date)
            end = to_storage(data.end_date) if data.end_date is not None else as_utc(p.end_date)
            status = p.status
            if data.status is not None and data.status != p.status:
                if not (p.status == PASS_ACTIVE and data.status == PASS_REVOKED):
                    raise PassValidationError(f"Cannot change status from {p.status} to {data.status}.")
                status = data.status
                revoking = True

            reason = check_interval(start, end, is_new=False, now=now)
            if reason:
                raise PassValidationError(reason)

            if status == PASS_ACTIVE:
                _guard_overlap(repo, p.device_id, start, end, exclude_id=p.id)
            p.start_date = start
            p.end_date = end
            p.status = status
            p.updated_at = as_utc(now) if now else utc_now()
            s.add(p)
            s.commit()
        except Exception:
            s.rollback()
            raise
    s.refresh(p)

    event = "PassRevoked" if revoking else "PassUpdated"
    log_info(logger, event, id=p.id, actor=actor.id)
    publish_event(event, {"passId": p.id, "deviceId": p.device_id, "status": p.status})
    return p


# Lecture unitaire : les passes échus de l'appareil sont d'abord
# passés à "expired" en base, puis le pass est relu.
def get_pass(s: Session, actor: Optional[Actor], pass_id: int) -> Pass:
    decision = pass_scope(s, actor)
    if isinstance(decision, Deny):
        raise PassForbidden(decision.reason)
    p = PassRepository(s).get_scoped(pass_id, decision)
    if p is None:
        raise PassNotFound("pass not found")
    expire_passes(s, device_id=p.device_id)
    s.refresh(p)
    return p


def delete_pass(s: Session, actor: Optional[Actor], pass_id: int):
    decision = staff_only(actor)
    if isinstance(decision, Deny):
        raise PassForbidden(decision.reason)
    repo = PassRepository(s)
    p = repo.get(pass_id)
    if p is None:
        raise PassNotFound("pass not found")
    repo.delete(p)
    log_info(logger, "pass deleted", id=pass_id, actor=actor.id)
