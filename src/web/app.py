"""Servidor web Flask para la API de liquidaciones."""

import logging

from flask import Flask
from flask_cors import CORS

from config import settings

logger = logging.getLogger(__name__)


def create_app():
    """Factory para crear la aplicación Flask."""
    app = Flask(__name__)

    app.secret_key = settings.SECRET_KEY
    app.json.sort_keys = False

    # CORS: el front (SPA) corre en otro puerto
    CORS(app, origins=settings.CORS_ORIGINS)

    # Security headers
    @app.after_request
    def add_security_headers(response):
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response

    # Registrar rutas
    from src.web.routes import register_routes
    register_routes(app)

    return app


if __name__ == "__main__":
    create_app().run(
        host=settings.WEB_HOST,
        port=settings.WEB_PORT,
        debug=False,
    )
