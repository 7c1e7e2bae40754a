"""Punto de entrada — servidor web y operaciones de liquidación por consola.

Modos de ejecución:
    python -m src.main --web                     → levantar API web
    python -m src.main --web --port 8080         → API web en puerto específico
    python -m src.main --init-db                 → crear tablas (idempotente)
    python -m src.main --cargar-contratos FILE   → importar contratos (.xlsx/.csv)
    python -m src.main --preview --hasta 2025-06-30 --objetivo six_months --modo pooled
    python -m src.main --ejecutar --hasta 2025-06-30 --objetivo one_year
"""

import argparse
import json
import logging
import sys

from config import settings

# Configurar logging antes de importar módulos que lo usen
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_web(port=None, host=None):
    """Levanta el servidor web Flask con la API de liquidaciones."""
    from src.web.app import create_app

    _port = port or settings.WEB_PORT
    _host = host or settings.WEB_HOST

    app = create_app()

    logger.info("=" * 60)
    logger.info("Servidor web iniciando en http://%s:%s", _host, _port)
    logger.info("Ctrl+C para detener")
    logger.info("=" * 60)

    app.run(host=_host, port=_port, debug=False)


def run_cargar_contratos(path, usuario="consola"):
    """Importa contratos desde un archivo y retorna el resumen de carga."""
    from src.ingest.contratos_reader import cargar_contratos, leer_contratos
    from src.liquidacion.models import get_db, init_db

    init_db()
    df = leer_contratos(path)
    with get_db() as conn:
        resumen = cargar_contratos(conn, df, usuario)
    logger.info(
        "Carga finalizada: %d insertados, %d sin alumno, %d con errores",
        resumen["insertados"], len(resumen["sin_alumno"]), len(resumen["errores"]),
    )
    return resumen


def run_liquidacion(datos, ejecutar=False, usuario="consola"):
    """Previsualiza o ejecuta una liquidación y retorna el resultado (dict)."""
    from src.liquidacion.models import get_db, init_db
    from src.liquidacion.motor import (
        ParametrosLiquidacion,
        ejecutar_liquidacion,
        previsualizar,
    )

    init_db()
    params = ParametrosLiquidacion.desde_dict(datos, con_valores_por_defecto=not ejecutar)
    with get_db() as conn:
        if ejecutar:
            return ejecutar_liquidacion(conn, params, usuario=usuario)
        return previsualizar(conn, params)


def main():
    """Punto de entrada principal con soporte de argumentos."""
    parser = argparse.ArgumentParser(description="Liquidación de jornadas")
    parser.add_argument("--web", action="store_true", help="Levantar la API web")
    parser.add_argument("--port", type=int, default=None, help="Puerto para el servidor web (default: 5000)")
    parser.add_argument("--init-db", action="store_true", help="Crear las tablas de la BD")
    parser.add_argument("--cargar-contratos", metavar="ARCHIVO", help="Importar contratos desde .xlsx o .csv")
    parser.add_argument("--preview", action="store_true", help="Previsualizar una liquidación")
    parser.add_argument("--ejecutar", action="store_true", help="Ejecutar y registrar una liquidación")
    parser.add_argument("--desde", default=None, help="Fecha desde (YYYY-MM-DD); por defecto, tras el último cierre")
    parser.add_argument("--hasta", default=None, help="Fecha hasta (YYYY-MM-DD)")
    parser.add_argument("--objetivo", choices=["six_months", "one_year"], default="six_months")
    parser.add_argument("--modo", choices=["individual", "pooled"], default="individual")
    args = parser.parse_args()

    if args.init_db:
        from src.liquidacion.models import init_db
        init_db()

    if args.cargar_contratos:
        run_cargar_contratos(args.cargar_contratos)

    if args.preview or args.ejecutar:
        from src.liquidacion.errores import LiquidacionError

        datos = {
            "start_date": args.desde,
            "end_date": args.hasta,
            "target": args.objetivo,
            "mode": args.modo,
        }
        try:
            resultado = run_liquidacion(datos, ejecutar=args.ejecutar)
        except LiquidacionError as exc:
            logger.error("%s", exc.mensaje)
            sys.exit(1)
        print(json.dumps(resultado, ensure_ascii=False, indent=2))

    if args.web:
        run_web(port=args.port)


if __name__ == "__main__":
    main()
