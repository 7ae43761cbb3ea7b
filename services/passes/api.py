# ============================================================
# Passes API Router
# ------------------------------------------------------------
# Endpoints REST pour créer / lister / modifier les passes d'un
# appareil, et pour lancer l'expiration globale (admin).
# Les erreurs métier de lifecycle.py sont traduites ici en codes
# HTTP ; les pannes de base en 500 {error, details}.
# ============================================================
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

import lifecycle
from access import allows_device, pass_scope
from database import get_session
from lifecycle import PassForbidden, PassNotFound, PassOverlapError, PassValidationError
from logger import get_logger, log_error
from models import ExpiryReport, PassCreate, PassRead, PassUpdate
from reconciler import expire_in_scope, expire_passes
from repository import PassRepository
from security import get_current_actor, require_admin, require_staff

logger = get_logger("api")
router = APIRouter()


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, PassValidationError):
        return HTTPException(400, str(e))
    if isinstance(e, PassOverlapError):
        return HTTPException(409, str(e))
    if isinstance(e, PassNotFound):
        return HTTPException(404, str(e))
    if isinstance(e, PassForbidden):
        return HTTPException(403, str(e))
    return HTTPException(500, str(e))


def _storage_error(message: str, e: Exception) -> JSONResponse:
    log_error(logger, message, error=e)
    return JSONResponse({"error": message, "details": str(e)}, status_code=500)


# ------------------------------------------------------------
# OPTIONS — preflight sans en-tête Access-Control-Request-Method
# (les vrais preflights sont servis par le middleware CORS)
# ------------------------------------------------------------
@router.options("/v1/passes")
@router.options("/v1/passes/expire")
def preflight():
    return Response(status_code=204)


# ------------------------------------------------------------
# GET /v1/passes?device=<id> — Passes d'un appareil
# ------------------------------------------------------------
# - expire d'abord (en base) les passes actifs dont la fin est
#   passée, pour cet appareil seulement
# - relit ensuite la liste, filtrée par le périmètre de l'appelant
# - is_currently_valid recalculé pour chaque pass
# ------------------------------------------------------------
@router.get("/v1/passes", response_model=List[PassRead])
def list_device_passes(device: Optional[int] = None, actor=Depends(get_current_actor),
                       s: Session = Depends(get_session)):
    if device is None:
        raise HTTPException(400, "Missing device parameter")
    try:
        decision = pass_scope(s, actor)
        if allows_device(decision, device):
            expire_passes(s, device_id=device)
        passes = PassRepository(s).list_for_device(device, decision)
    except SQLAlchemyError as e:
        s.rollback()
        return _storage_error("Failed to fetch passes", e)
    return lifecycle.annotate_all(passes)


# GET /v1/passes/overview — tous les passes visibles par l'appelant
# (expiration d'abord, sur ce même périmètre)
@router.get("/v1/passes/overview", response_model=List[PassRead])
def list_visible_passes(actor=Depends(get_current_actor), s: Session = Depends(get_session)):
    try:
        decision = pass_scope(s, actor)
        expire_in_scope(s, decision)
        passes = PassRepository(s).list(decision)
    except SQLAlchemyError as e:
        s.rollback()
        return _storage_error("Failed to fetch passes", e)
    return lifecycle.annotate_all(passes)


# ------------------------------------------------------------
# POST /v1/passes/expire — Expiration globale (admin)
# ------------------------------------------------------------
@router.post("/v1/passes/expire", response_model=ExpiryReport, response_model_exclude_none=True)
def expire_all(actor=Depends(require_admin), s: Session = Depends(get_session)):
    try:
        return expire_passes(s)
    except SQLAlchemyError as e:
        s.rollback()
        return _storage_error("Failed to expire passes", e)


@router.post("/v1/passes", response_model=PassRead, status_code=201)
def create_pass(data: PassCreate, actor=Depends(get_current_actor), s: Session = Depends(get_session)):
    try:
        p = lifecycle.create_pass(s, actor, data)
    except lifecycle.PassError as e:
        raise _http_error(e)
    return lifecycle.annotate(p)


@router.get("/v1/passes/{pass_id}", response_model=PassRead)
def get_pass(pass_id: int, actor=Depends(get_current_actor), s: Session = Depends(get_session)):
    try:
        p = lifecycle.get_pass(s, actor, pass_id)
    except lifecycle.PassError as e:
        raise _http_error(e)
    except SQLAlchemyError as e:
        s.rollback()
        return _storage_error("Failed to fetch pass", e)
    return lifecycle.annotate(p)


# ------------------------------------------------------------
# PATCH /v1/passes/{id} — Corrections / révocation (admin, security)
# ------------------------------------------------------------
@router.patch("/v1/passes/{pass_id}", response_model=PassRead)
def update_pass(pass_id: int, data: PassUpdate, actor=Depends(require_staff),
                s: Session = Depends(get_session)):
    try:
        p = lifecycle.update_pass(s, actor, pass_id, data)
    except lifecycle.PassError as e:
        raise _http_error(e)
    return lifecycle.annotate(p)


@router.delete("/v1/passes/{pass_id}", status_code=204)
def delete_pass(pass_id: int, actor=Depends(require_staff), s: Session = Depends(get_session)):
    try:
        lifecycle.delete_pass(s, actor, pass_id)
    except lifecycle.PassError as e:
        raise _http_error(e)
    return Response(status_code=204)
