# ============================================================
# Devices API Router
# ------------------------------------------------------------
# Appareils des utilisateurs. Un employé ne voit / crée que ses
# propres appareils ; admin et security voient tout et peuvent
# changer le statut (approbation, désactivation).
# ============================================================
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from access import Actor, device_scope
from database import get_session
from logger import get_logger, log_info
from models import DEVICE_STATUSES, DEVICE_TYPES, Device, DeviceCreate, DeviceRead, DeviceStatusUpdate
from repository import DeviceRepository, UserRepository
from security import get_current_actor, require_staff

logger = get_logger("devices")
router = APIRouter()


@router.post("/v1/devices", response_model=DeviceRead, status_code=201)
def create_device(data: DeviceCreate, actor: Actor = Depends(get_current_actor),
                  s: Session = Depends(get_session)):
    if data.device_type not in DEVICE_TYPES:
        raise HTTPException(400, f"device_type must be one of {', '.join(DEVICE_TYPES)}")

    owner_id = actor.id
    if data.owner_id is not None and data.owner_id != actor.id:
        # seul le staff peut enregistrer un appareil pour quelqu'un d'autre
        if not actor.is_staff:
            raise HTTPException(403, "cannot register a device for another user")
        if UserRepository(s).get(data.owner_id) is None:
            raise HTTPException(404, "owner not found")
        owner_id = data.owner_id

    repo = DeviceRepository(s)
    try:
        d = repo.create(Device(
            device_name=data.device_name,
            device_type=data.device_type,
            serial_number=data.serial_number,
            owner_id=owner_id,
        ))
    except IntegrityError:
        s.rollback()
        raise HTTPException(409, "serial number already registered")
    log_info(logger, "device created", id=d.id, owner=owner_id, actor=actor.id)
    return d


@router.get("/v1/devices", response_model=List[DeviceRead])
def list_devices(actor: Actor = Depends(get_current_actor), s: Session = Depends(get_session)):
    return DeviceRepository(s).list(device_scope(s, actor))


@router.get("/v1/devices/{device_id}", response_model=DeviceRead)
def get_device(device_id: int, actor: Actor = Depends(get_current_actor),
               s: Session = Depends(get_session)):
    d = DeviceRepository(s).get_scoped(device_id, device_scope(s, actor))
    if not d:
        raise HTTPException(404, "not found")
    return d


@router.patch("/v1/devices/{device_id}/status", response_model=DeviceRead)
def update_device_status(device_id: int, data: DeviceStatusUpdate, actor: Actor = Depends(require_staff),
                         s: Session = Depends(get_session)):
    if data.status not in DEVICE_STATUSES:
        raise HTTPException(400, f"status must be one of {', '.join(DEVICE_STATUSES)}")
    d = DeviceRepository(s).update_status(device_id, data.status)
    if not d:
        raise HTTPException(404, "not found")
    log_info(logger, "device status changed", id=d.id, status=d.status, actor=actor.id)
    return d
