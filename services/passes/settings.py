# ============================================================
# settings.py — Configuration du service Passes
# ------------------------------------------------------------
# Toutes les valeurs viennent de l'environnement (docker-compose,
# .env, CI). Lues une seule fois à l'import du module.
# ============================================================
import os
from zoneinfo import ZoneInfo

# Base de données (PostgreSQL en déploiement, SQLite en local)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./passes.db")

# Jetons JWT émis par /v1/auth/login
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-only-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# Origines autorisées (liste séparée par des virgules)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3001").split(",") if o.strip()]

# Timezone utilisée pour les dates naïves et pour "aujourd'hui"
LOCAL_TZ = ZoneInfo(os.getenv("LOCAL_TZ", "America/Toronto"))

# Événements RabbitMQ (désactivés par défaut)
RABBITMQ_HOST = os.getenv("RABBITMQ_HOST", "localhost")
EVENTS_ENABLED = os.getenv("EVENTS_ENABLED", "false").lower() in ("1", "true", "yes")

# Expiration automatique des passes
EXPIRY_SWEEP_INTERVAL = int(os.getenv("EXPIRY_SWEEP_INTERVAL", "0"))   # 0 = pas de thread
EXPIRY_BATCH_TIMEOUT = float(os.getenv("EXPIRY_BATCH_TIMEOUT", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
