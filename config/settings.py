"""Configuración centralizada — lee variables desde .env."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Raíz del proyecto: dos niveles arriba de este archivo (config/settings.py)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Cargar .env desde la raíz del proyecto
load_dotenv(PROJECT_ROOT / ".env")

# ── Rutas ──────────────────────────────────────────────────
OUTPUT_PATH = Path(os.getenv("OUTPUT_PATH", "./data/output"))
LIQUIDACION_DB_PATH = Path(os.getenv("LIQUIDACION_DB_PATH", "./data/liquidaciones.db"))
CONTRATOS_PATH = Path(os.getenv("CONTRATOS_PATH", "./data/config/contratos.xlsx"))

# Resolver rutas relativas respecto a la raíz del proyecto
if not OUTPUT_PATH.is_absolute():
    OUTPUT_PATH = PROJECT_ROOT / OUTPUT_PATH
if not LIQUIDACION_DB_PATH.is_absolute():
    LIQUIDACION_DB_PATH = PROJECT_ROOT / LIQUIDACION_DB_PATH
if not CONTRATOS_PATH.is_absolute():
    CONTRATOS_PATH = PROJECT_ROOT / CONTRATOS_PATH

# ── Reportes PDF ──────────────────────────────────────────
REPORTS_PATH = OUTPUT_PATH / "liquidaciones"

# ── Liquidación ───────────────────────────────────────────
# Fecha desde la que se acumula si no hay liquidaciones previas ni contratos
LIQUIDACION_FECHA_MINIMA = os.getenv("LIQUIDACION_FECHA_MINIMA", "2020-01-01")
# Segundos que SQLite espera por el bloqueo de escritura antes de rendirse
SQLITE_BUSY_TIMEOUT = float(os.getenv("SQLITE_BUSY_TIMEOUT", "5"))

# ── Dashboard Web ─────────────────────────────────────────
SECRET_KEY = os.getenv("SECRET_KEY", "")
if not SECRET_KEY:
    import secrets as _secrets
    SECRET_KEY = _secrets.token_hex(32)
    import logging as _logging
    _logging.getLogger(__name__).warning(
        "SECRET_KEY no configurada — usando clave aleatoria temporal"
    )
WEB_PORT = int(os.getenv("WEB_PORT", "5000"))
WEB_HOST = os.getenv("WEB_HOST", "0.0.0.0")
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS", "http://localhost:*,http://127.0.0.1:*"
    ).split(",")
    if o.strip()
]

# ── Logging ────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
