# Gunicorn para la API de liquidaciones (producción)
# gunicorn -c deploy/gunicorn.conf.py "src.web.app:create_app()"
#
# Host, puerto y nivel de log salen de config.settings (.env). Los workers
# comparten la misma BD SQLite: BEGIN IMMEDIATE serializa las ejecuciones.

import os

from config import settings

bind = f"{settings.WEB_HOST}:{settings.WEB_PORT}"
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
worker_class = "sync"
# Siempre mayor que la espera de SQLite por el bloqueo de escritura
timeout = max(30, int(settings.SQLITE_BUSY_TIMEOUT) * 4)

_log_dir = os.getenv("GUNICORN_LOG_DIR", "/var/log/liquidaciones")
accesslog = f"{_log_dir}/gunicorn-access.log"
errorlog = f"{_log_dir}/gunicorn-error.log"
loglevel = settings.LOG_LEVEL.lower()

preload_app = True


def on_starting(server):
    """Crea el esquema una sola vez, antes de levantar los workers."""
    from src.liquidacion.models import init_db

    init_db()
    server.log.info("BD de liquidaciones lista: %s", settings.LIQUIDACION_DB_PATH)
