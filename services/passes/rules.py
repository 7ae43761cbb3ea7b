# ============================================================
# rules.py — Règles métier pures sur les passes
# ------------------------------------------------------------
#   - normalisation des dates (UTC explicite pour le stockage)
#   - validation de l'intervalle [start, end)
#   - calcul de "valide maintenant" (jamais stocké)
#   - génération du label d'affichage
# Aucune de ces fonctions ne touche à la base.
# ============================================================
import random
import string
from datetime import datetime, time, timezone
from typing import Optional

import settings
from logger import get_logger, log_info
from models import PASS_ACTIVE

logger = get_logger("rules")

LABEL_LENGTH = 8


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Relu de la base -> UTC explicite. SQLite rend des datetimes naïfs, déjà en UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_storage(dt: datetime) -> datetime:
    """Datetime reçu de l'API -> UTC. Si pas de tz, on suppose la timezone locale."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=settings.LOCAL_TZ)
    return dt.astimezone(timezone.utc)


def to_public(dt: datetime) -> datetime:
    return as_utc(dt)


def start_of_today(now: Optional[datetime] = None) -> datetime:
    """Minuit local du jour courant, exprimé en UTC."""
    local = as_utc(now or utc_now()).astimezone(settings.LOCAL_TZ)
    midnight = datetime.combine(local.date(), time.min, tzinfo=settings.LOCAL_TZ)
    return midnight.astimezone(timezone.utc)


# ------------------------------------------------------------
# Validation de l'intervalle
# ------------------------------------------------------------
# Retourne None si l'intervalle est accepté, sinon la raison.
# - end obligatoire et strictement après start
# - start obligatoire ; pour une création seulement, pas avant
#   aujourd'hui (comparaison au jour près)
# - maintenance=True : réservé aux chemins internes (reconciler),
#   aucune vérification
# ------------------------------------------------------------
def check_interval(start: Optional[datetime], end: Optional[datetime], is_new: bool,
                   now: Optional[datetime] = None, maintenance: bool = False) -> Optional[str]:
    if maintenance:
        return None

    start, end = as_utc(start), as_utc(end)
    reason = None
    if start is None:
        reason = "Start date is required."
    elif end is None:
        reason = "End date is required."
    elif end <= start:
        reason = "End date must be after start date."
    elif is_new and start < start_of_today(now):
        reason = "Start date cannot be before today."

    if reason:
        log_info(logger, "interval rejected", reason=reason, start=start, end=end, is_new=is_new)
    return reason


def is_currently_valid(status: str, start: datetime, end: datetime, now: Optional[datetime] = None) -> bool:
    now = as_utc(now) if now else utc_now()
    return status == PASS_ACTIVE and as_utc(start) <= now <= as_utc(end)


def generate_label(n: int = LABEL_LENGTH) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(random.choice(alphabet) for _ in range(n))
