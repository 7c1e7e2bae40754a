"""
Rutas Flask del módulo de Liquidación.

API JSON:
    GET  /liquidations               → histórico de liquidaciones
    GET  /liquidations/preview       → previsualización (no escribe)
    GET  /liquidations/<id>          → detalle con líneas por alumno
    GET  /liquidations/<id>/pdf      → detalle en PDF
    POST /liquidations               → ejecutar liquidación

Los errores se devuelven siempre como {"error": mensaje}.
"""

import logging

from flask import jsonify, request, send_file

from src.liquidacion.errores import LiquidacionError
from src.liquidacion.models import get_db, init_db
from src.liquidacion.motor import (
    ParametrosLiquidacion,
    ejecutar_liquidacion,
    listar_liquidaciones,
    obtener_liquidacion,
    previsualizar,
)

logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _json_error(msg: str, code: int = 400):
    return jsonify({"error": msg}), code


def _error_liquidacion(exc: LiquidacionError):
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc.mensaje)
    else:
        logger.info("%s: %s", type(exc).__name__, exc.mensaje)
    return _json_error(exc.mensaje, exc.status_code)


def _get_ip() -> str:
    return request.headers.get("X-Forwarded-For", request.remote_addr or "")


def _usuario() -> str:
    return request.headers.get("X-Usuario", "").strip() or "desconocido"


# ── Registro de rutas ─────────────────────────────────────────────────────────

def register_liquidacion_routes(app):
    """Registra todas las rutas del módulo de liquidación en la app Flask."""

    # Inicializar BD al arrancar
    init_db()

    @app.route("/liquidations", methods=["GET"])
    def api_liquidaciones_list():
        try:
            with get_db() as conn:
                return jsonify(listar_liquidaciones(conn))
        except Exception as exc:
            logger.exception("Error listando liquidaciones")
            return _json_error(str(exc), 500)

    @app.route("/liquidations/preview", methods=["GET"])
    def api_liquidaciones_preview():
        try:
            params = ParametrosLiquidacion.desde_dict(
                request.args, con_valores_por_defecto=True
            )
            with get_db() as conn:
                return jsonify(previsualizar(conn, params))
        except LiquidacionError as exc:
            return _error_liquidacion(exc)
        except Exception as exc:
            logger.exception("Error generando previsualización")
            return _json_error(str(exc), 500)

    @app.route("/liquidations/<int:liquidacion_id>", methods=["GET"])
    def api_liquidacion_detalle(liquidacion_id):
        try:
            with get_db() as conn:
                detalle = obtener_liquidacion(conn, liquidacion_id)
            if detalle is None:
                return _json_error("Liquidación no encontrada", 404)
            return jsonify(detalle)
        except Exception as exc:
            logger.exception("Error obteniendo liquidación %d", liquidacion_id)
            return _json_error(str(exc), 500)

    @app.route("/liquidations/<int:liquidacion_id>/pdf", methods=["GET"])
    def api_liquidacion_pdf(liquidacion_id):
        from src.reports.liquidacion_pdf import generar_pdf_liquidacion

        try:
            with get_db() as conn:
                detalle = obtener_liquidacion(conn, liquidacion_id)
            if detalle is None:
                return _json_error("Liquidación no encontrada", 404)
            pdf_path = generar_pdf_liquidacion(detalle)
            return send_file(
                pdf_path,
                mimetype="application/pdf",
                as_attachment=True,
                download_name=pdf_path.name,
            )
        except Exception as exc:
            logger.exception("Error generando PDF de liquidación %d", liquidacion_id)
            return _json_error(str(exc), 500)

    @app.route("/liquidations", methods=["POST"])
    def api_liquidaciones_ejecutar():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return _json_error("El cuerpo debe ser un objeto JSON")
        try:
            params = ParametrosLiquidacion.desde_dict(data)
            with get_db() as conn:
                detalle = ejecutar_liquidacion(
                    conn, params, usuario=_usuario(), ip=_get_ip()
                )
            return jsonify(detalle), 201
        except LiquidacionError as exc:
            return _error_liquidacion(exc)
        except Exception as exc:
            logger.exception("Error ejecutando liquidación")
            return _json_error(str(exc), 500)
