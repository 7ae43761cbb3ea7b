# ============================================================
# cors.py — CORS limité à une liste d'origines
# ------------------------------------------------------------
# CORSMiddleware de Starlette, avec une réponse de preflight
# réduite à un 204 sans corps. Pour une origine hors liste, le
# 204 part sans Access-Control-Allow-Origin : le navigateur
# bloque.
# ============================================================
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

import settings

ALLOWED_METHODS = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization"]


class PreflightCORSMiddleware(CORSMiddleware):
    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers=request_headers)
        headers = {
            k: v for k, v in response.headers.items()
            if k.lower() not in ("content-length", "content-type")
        }
        return Response(status_code=204, headers=headers)


def install_cors(app, origins=None):
    app.add_middleware(
        PreflightCORSMiddleware,
        allow_origins=origins if origins is not None else settings.CORS_ORIGINS,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )
