# ============================================================
# models.py — Modèles de données SQLModel (Passes Service)
# ------------------------------------------------------------
# Tables de la base :
#   1️. User   : identité + rôle (employee | security | admin)
#   2️. Device : appareil appartenant à un utilisateur
#   3️. Pass   : période de validité accordée à un appareil
# Plus les schémas d'entrée/sortie de l'API.
# ============================================================
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

# Rôles
ROLE_EMPLOYEE = "employee"
ROLE_SECURITY = "security"
ROLE_ADMIN = "admin"
ROLES = (ROLE_EMPLOYEE, ROLE_SECURITY, ROLE_ADMIN)

# Cycle de vie d'un appareil
DEVICE_ACTIVE = "active"
DEVICE_PENDING = "pending-approval"
DEVICE_DEACTIVATED = "deactivated"
DEVICE_STATUSES = (DEVICE_ACTIVE, DEVICE_PENDING, DEVICE_DEACTIVATED)
DEVICE_TYPES = ("Phone", "Tablet", "Laptop", "Other")

# Cycle de vie d'un pass : active → expired (temps) | active → revoked (manuel)
PASS_ACTIVE = "active"
PASS_EXPIRED = "expired"
PASS_REVOKED = "revoked"
PASS_STATUSES = (PASS_ACTIVE, PASS_EXPIRED, PASS_REVOKED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Colonnes date/heure : toujours en UTC avec timezone
def _ts(**kwargs):
    return Field(sa_type=DateTime(timezone=True), **kwargs)


# ------------------------------------------------------------
# Tables
# ------------------------------------------------------------
class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    hashed_password: str
    role: str = ROLE_EMPLOYEE
    created_at: datetime = _ts(default_factory=_utcnow)


class Device(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    device_name: str
    device_type: str = "Other"
    serial_number: str = Field(index=True, unique=True)
    owner_id: int = Field(foreign_key="user.id", index=True)
    status: str = DEVICE_ACTIVE
    created_at: datetime = _ts(default_factory=_utcnow)


class Pass(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    label: Optional[str] = None                       # affichage seulement
    device_id: int = Field(foreign_key="device.id", index=True)
    start_date: datetime = _ts()
    end_date: datetime = _ts()
    status: str = Field(default=PASS_ACTIVE, index=True)
    created_at: datetime = _ts(default_factory=_utcnow)
    updated_at: datetime = _ts(default_factory=_utcnow)


# ------------------------------------------------------------
# Schémas API
# ------------------------------------------------------------
class LoginRequest(SQLModel):
    email: str
    password: str


class TokenResponse(SQLModel):
    access_token: str
    token_type: str = "bearer"


class UserCreate(SQLModel):
    email: str
    password: str
    role: str = ROLE_EMPLOYEE


class UserRead(SQLModel):
    id: int
    email: str
    role: str


class DeviceCreate(SQLModel):
    device_name: str
    device_type: str = "Other"
    serial_number: str
    owner_id: Optional[int] = None      # admin/security seulement


class DeviceStatusUpdate(SQLModel):
    status: str


class DeviceRead(SQLModel):
    id: int
    device_name: str
    device_type: str
    serial_number: str
    owner_id: int
    status: str


class PassCreate(SQLModel):
    device_id: int
    start_date: datetime
    end_date: datetime


class PassUpdate(SQLModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[str] = None


class PassRead(SQLModel):
    id: int
    label: Optional[str]
    device_id: int
    start_date: datetime
    end_date: datetime
    status: str
    is_currently_valid: bool
    created_at: datetime
    updated_at: datetime


class ExpiryDetail(SQLModel):
    id: int
    success: bool
    error: Optional[str] = None


class ExpiryReport(SQLModel):
    expired: int = 0
    details: List[ExpiryDetail] = Field(default_factory=list)
