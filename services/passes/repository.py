# ============================================================
# repository.py — Accès aux données (User, Device, Pass)
# ------------------------------------------------------------
# Pattern "Repository" : les routes, le cycle de vie des passes
# et le reconciler passent tous par ici pour lire/écrire.
# Les méthodes add_* ne committent pas : c'est l'appelant qui
# décide où s'arrête la transaction.
# ============================================================
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from access import AccessDecision, scope_devices, scope_passes
from models import PASS_ACTIVE, PASS_EXPIRED, Device, Pass, User


class UserRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, u: User):
        self.session.add(u)
        self.session.commit()
        self.session.refresh(u)
        return u

    def get(self, user_id: int):
        return self.session.get(User, user_id)

    def get_by_email(self, email: str):
        return self.session.exec(select(User).where(User.email == email)).first()


class DeviceRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, d: Device):
        self.session.add(d)
        self.session.commit()
        self.session.refresh(d)
        return d

    def get(self, device_id: int):
        return self.session.exec(select(Device).where(Device.id == device_id)).first()

    # Verrou de ligne sur l'appareil (SELECT ... FOR UPDATE).
    # PostgreSQL bloque les autres écrivains jusqu'au commit.
    def lock(self, device_id: int):
        return self.session.exec(
            select(Device).where(Device.id == device_id).with_for_update()
        ).first()

    def list(self, decision: AccessDecision) -> List[Device]:
        stmt = scope_devices(select(Device), decision).order_by(Device.id)
        return list(self.session.exec(stmt).all())

    def get_scoped(self, device_id: int, decision: AccessDecision):
        stmt = scope_devices(select(Device).where(Device.id == device_id), decision)
        return self.session.exec(stmt).first()

    def update_status(self, device_id: int, status: str):
        d = self.get(device_id)
        if d:
            d.status = status
            self.session.commit()
            self.session.refresh(d)
        return d


class PassRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, p: Pass):
        self.session.add(p)
        return p

    def get(self, pass_id: int):
        return self.session.exec(select(Pass).where(Pass.id == pass_id)).first()

    def get_scoped(self, pass_id: int, decision: AccessDecision):
        stmt = scope_passes(select(Pass).where(Pass.id == pass_id), decision)
        return self.session.exec(stmt).first()

    def list_for_device(self, device_id: int, decision: AccessDecision) -> List[Pass]:
        stmt = scope_passes(select(Pass).where(Pass.device_id == device_id), decision)
        return list(self.session.exec(stmt.order_by(Pass.start_date)).all())

    def list(self, decision: AccessDecision) -> List[Pass]:
        stmt = scope_passes(select(Pass), decision).order_by(Pass.device_id, Pass.start_date)
        return list(self.session.exec(stmt).all())

    # ------------------------------------------------------------
    # Chevauchement : pass actif du même appareil tel que
    #   existing.start < candidate.end AND existing.end > candidate.start
    # (intervalles semi-ouverts [start, end))
    # ------------------------------------------------------------
    def find_overlapping(self, device_id: int, start: datetime, end: datetime,
                         exclude_id: Optional[int] = None):
        stmt = select(Pass).where(
            Pass.device_id == device_id,
            Pass.status == PASS_ACTIVE,
            Pass.start_date < end,
            Pass.end_date > start,
        )
        if exclude_id is not None:
            stmt = stmt.where(Pass.id != exclude_id)
        return self.session.exec(stmt.limit(1)).first()

    def find_expirable_ids(self, now: datetime, device_id: Optional[int] = None,
                           device_ids: Optional[Iterable[int]] = None) -> List[int]:
        stmt = select(Pass.id).where(Pass.status == PASS_ACTIVE, Pass.end_date < now)
        if device_id is not None:
            stmt = stmt.where(Pass.device_id == device_id)
        if device_ids is not None:
            stmt = stmt.where(Pass.device_id.in_(sorted(device_ids)))
        return list(self.session.exec(stmt.order_by(Pass.id)).all())

    # Passage conditionnel active -> expired, clé = id.
    # Retourne True si la ligne a effectivement changé.
    def expire_if_active(self, pass_id: int, now: datetime) -> bool:
        stmt = (
            update(Pass)
            .where(Pass.id == pass_id, Pass.status == PASS_ACTIVE)
            .values(status=PASS_EXPIRED, updated_at=now)
        )
        result = self.session.connection().execute(stmt)
        self.session.commit()
        return result.rowcount == 1

    def delete(self, p: Pass):
        self.session.delete(p)
        self.session.commit()
