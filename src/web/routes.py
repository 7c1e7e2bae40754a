"""Rutas generales del servidor web."""

import logging

from flask import jsonify

from src.liquidacion.acumulados import ultima_liquidacion_fin
from src.liquidacion.models import get_db

logger = logging.getLogger(__name__)


def register_routes(app):
    """Registra todas las rutas en la app Flask."""

    @app.route("/api/health")
    def api_health():
        """Health check — incluye la fecha de la última liquidación."""
        try:
            with get_db() as conn:
                ultima = ultima_liquidacion_fin(conn)
        except Exception as exc:
            logger.error("Health check sin acceso a la BD: %s", exc)
            return jsonify({"status": "error", "error": str(exc)}), 503

        return jsonify({
            "status": "ok",
            "ultima_liquidacion": ultima.isoformat() if ultima else None,
        })

    from src.web.routes_liquidacion import register_liquidacion_routes
    register_liquidacion_routes(app)
