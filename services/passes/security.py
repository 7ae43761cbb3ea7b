# ============================================================
# security.py — Identité des appelants
# ------------------------------------------------------------
# - mots de passe : bcrypt
# - jetons : JWT signés (python-jose), "sub" = id utilisateur
# - dépendances FastAPI :
#     401 : jeton absent / invalide / expiré / utilisateur inconnu
#     403 : jeton valide mais rôle insuffisant
# Le rôle est relu en base à chaque requête.
# ============================================================
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlmodel import Session

import settings
from access import Actor, Deny, admin_only, staff_only
from database import get_session
from logger import get_logger, log_info
from repository import UserRepository

logger = get_logger("security")

# auto_error=False : on renvoie nous-mêmes 401 (et pas 403) sans jeton
bearer = HTTPBearer(auto_error=False)


def get_password_hash(password: str) -> str:
    # bcrypt limite à 72 octets
    hashed = bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8")[:72], hashed_password.encode("utf-8"))


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise _unauthorized("Could not validate credentials")
    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")
    return payload


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    s: Session = Depends(get_session),
) -> Actor:
    if credentials is None:
        raise _unauthorized("Not authenticated")
    payload = decode_token(credentials.credentials)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized("Could not validate credentials")

    user = UserRepository(s).get(user_id)
    if user is None:
        log_info(logger, "token for unknown user", sub=user_id)
        raise _unauthorized("Could not validate credentials")
    return Actor(id=user.id, role=user.role)


def _forbid_if_denied(decision):
    if isinstance(decision, Deny):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=decision.reason)


def require_staff(actor: Actor = Depends(get_current_actor)) -> Actor:
    _forbid_if_denied(staff_only(actor))
    return actor


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    _forbid_if_denied(admin_only(actor))
    return actor
