# ============================================================
# access.py — Périmètre d'accès par rôle
# ------------------------------------------------------------
# Chaque contrôle retourne une décision de même forme :
#   - Allow              : tout est visible / modifiable
#   - Deny               : rien
#   - AllowWithFilter    : seulement les appareils listés
# admin et security voient tout ; un employé ne voit que ses
# appareils et les passes de ses appareils. Pas d'accès anonyme.
# ============================================================
from dataclasses import dataclass
from typing import FrozenSet, Optional, Union

from sqlalchemy import false
from sqlmodel import Session, select

from models import ROLE_ADMIN, ROLE_SECURITY, Device, Pass


@dataclass(frozen=True)
class Actor:
    id: int
    role: str

    @property
    def is_staff(self) -> bool:
        return self.role in (ROLE_ADMIN, ROLE_SECURITY)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Deny:
    reason: str = "not authenticated"


@dataclass(frozen=True)
class AllowWithFilter:
    device_ids: FrozenSet[int]


AccessDecision = Union[Allow, Deny, AllowWithFilter]


def owned_device_ids(s: Session, user_id: int) -> FrozenSet[int]:
    rows = s.exec(select(Device.id).where(Device.owner_id == user_id)).all()
    return frozenset(rows)


def device_scope(s: Session, actor: Optional[Actor]) -> AccessDecision:
    if actor is None:
        return Deny()
    if actor.is_staff:
        return Allow()
    return AllowWithFilter(owned_device_ids(s, actor.id))


# Même périmètre que les appareils : un pass est visible si son
# appareil l'est.
def pass_scope(s: Session, actor: Optional[Actor]) -> AccessDecision:
    return device_scope(s, actor)


def staff_only(actor: Optional[Actor]) -> AccessDecision:
    if actor is None:
        return Deny()
    if actor.is_staff:
        return Allow()
    return Deny("admin or security role required")


def admin_only(actor: Optional[Actor]) -> AccessDecision:
    if actor is None:
        return Deny()
    if actor.is_admin:
        return Allow()
    return Deny("admin role required")


def allows_device(decision: AccessDecision, device_id: int) -> bool:
    if isinstance(decision, Allow):
        return True
    if isinstance(decision, AllowWithFilter):
        return device_id in decision.device_ids
    return False


# ------------------------------------------------------------
# Application d'une décision sur une requête select()
# ------------------------------------------------------------
# Un filtre vide donne un résultat vide (jamais "tout").
# ------------------------------------------------------------
def scope_devices(stmt, decision: AccessDecision):
    if isinstance(decision, Allow):
        return stmt
    if isinstance(decision, AllowWithFilter) and decision.device_ids:
        return stmt.where(Device.id.in_(sorted(decision.device_ids)))
    return stmt.where(false())


def scope_passes(stmt, decision: AccessDecision):
    if isinstance(decision, Allow):
        return stmt
    if isinstance(decision, AllowWithFilter) and decision.device_ids:
        return stmt.where(Pass.device_id.in_(sorted(decision.device_ids)))
    return stmt.where(false())
