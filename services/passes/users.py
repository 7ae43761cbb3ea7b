# ============================================================
# Users / Auth API Router
# ------------------------------------------------------------
# - POST /v1/auth/login : email + mot de passe → jeton JWT
# - GET  /v1/auth/me    : utilisateur courant
# - POST /v1/users      : création d'un compte (admin)
# ============================================================
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from access import Actor
from database import get_session
from logger import get_logger, log_info
from models import ROLES, LoginRequest, TokenResponse, User, UserCreate, UserRead
from repository import UserRepository
from security import create_access_token, get_current_actor, get_password_hash, require_admin, verify_password

logger = get_logger("users")
router = APIRouter()


@router.post("/v1/auth/login", response_model=TokenResponse)
def login(data: LoginRequest, s: Session = Depends(get_session)):
    user = UserRepository(s).get_by_email(data.email)
    if not user or not verify_password(data.password, user.hashed_password):
        log_info(logger, "login failed", email=data.email)
        raise HTTPException(401, "invalid credentials", headers={"WWW-Authenticate": "Bearer"})
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return TokenResponse(access_token=token)


@router.get("/v1/auth/me", response_model=UserRead)
def me(actor: Actor = Depends(get_current_actor), s: Session = Depends(get_session)):
    return UserRepository(s).get(actor.id)


def create_user(s: Session, email: str, password: str, role: str) -> User:
    if role not in ROLES:
        raise ValueError(f"role must be one of {', '.join(ROLES)}")
    return UserRepository(s).create(User(email=email, hashed_password=get_password_hash(password), role=role))


@router.post("/v1/users", response_model=UserRead, status_code=201)
def create_user_endpoint(data: UserCreate, actor: Actor = Depends(require_admin),
                         s: Session = Depends(get_session)):
    try:
        u = create_user(s, data.email, data.password, data.role)
    except ValueError as e:
        raise HTTPException(400, str(e))
    except IntegrityError:
        s.rollback()
        raise HTTPException(409, "email already registered")
    log_info(logger, "user created", id=u.id, role=u.role, actor=actor.id)
    return u
