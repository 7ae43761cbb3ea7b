# ============================================================
# app.py — Point d'entrée du service Passes
# ------------------------------------------------------------
# Ce module initialise l'application FastAPI du service :
#   - Crée les tables dans la base de données
#   - Démarre (si configuré) le thread d'expiration des passes
#   - Monte les routes (auth, appareils, passes) et le CORS
# ============================================================
from fastapi import FastAPI

from api import router as passes_router
from cors import install_cors
from database import init_db
from devices import router as devices_router
from logger import setup_logging
from reconciler import start_sweeper
from users import router as users_router

setup_logging()

app = FastAPI(title="Passes Service")
install_cors(app)


# Exécuté au lancement du conteneur.
# 1️. Crée les tables SQL (une seule fois).
# 2️. Lance le thread d'expiration si EXPIRY_SWEEP_INTERVAL > 0.
@app.on_event("startup")
def start():
    init_db()
    start_sweeper()


app.include_router(users_router)
app.include_router(devices_router)
app.include_router(passes_router)
