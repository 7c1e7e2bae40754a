"""
Modelos de datos para el módulo de liquidaciones.

Gestiona la base de datos SQLite con todas las tablas del sistema:
  - alumnos: alumnos del programa y fecha desde la que acumulan
  - contratos: inserciones laborales (fuente de los días FTE acumulados)
  - liquidaciones: cabecera de cada liquidación ejecutada
  - liquidacion_lineas: saldo de cada alumno dentro de una liquidación
  - log_auditoria: trazabilidad de todas las acciones

Los días FTE se guardan como TEXT decimal y se leen como ``Decimal`` para no
arrastrar error de coma flotante de una liquidación a la siguiente.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from config import settings

logger = logging.getLogger(__name__)

sqlite3.register_adapter(Decimal, str)

# DDL de la base de datos: se ejecuta una sola vez en init_db()
_SCHEMA = """
-- ─── Alumnos ─────────────────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS alumnos (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    first_names         TEXT     NOT NULL,
    last_names          TEXT     NOT NULL DEFAULT '',
    dni_nie             TEXT     UNIQUE,
    course_code         TEXT,
    eligible_from_date  DATE,                       -- NULL = acumula desde el inicio del contrato
    fecha_creacion      DATETIME NOT NULL
);

-- ─── Contratos (inserciones laborales) ──────────────────────────────────────
CREATE TABLE IF NOT EXISTS contratos (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    alumno_id           INTEGER  NOT NULL REFERENCES alumnos(id) ON DELETE RESTRICT,
    cif_empresa         TEXT,
    nombre_empresa      TEXT     NOT NULL DEFAULT '',
    fecha_inicio        DATE     NOT NULL,
    fecha_fin           DATE,                       -- NULL = contrato vigente
    porcentaje_jornada  TEXT     NOT NULL,          -- 0 < p <= 100, decimal
    tipo_contrato       TEXT,
    horas_semanales     REAL,
    fecha_importacion   DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_contratos_alumno ON contratos(alumno_id);
CREATE INDEX IF NOT EXISTS idx_contratos_fechas ON contratos(fecha_inicio, fecha_fin);

-- ─── Liquidaciones ───────────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS liquidaciones (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    start_date           DATE     NOT NULL,
    end_date             DATE     NOT NULL,
    target               TEXT     NOT NULL,         -- six_months | one_year
    mode                 TEXT     NOT NULL,         -- individual | pooled
    target_fte_days      INTEGER  NOT NULL,
    total_students       INTEGER  NOT NULL,
    total_jornadas       INTEGER  NOT NULL,
    total_fte_days_used  TEXT     NOT NULL,
    created_at           DATETIME NOT NULL,
    created_by           TEXT     NOT NULL,
    CHECK (start_date <= end_date)
);

CREATE INDEX IF NOT EXISTS idx_liq_end_date ON liquidaciones(end_date);

-- ─── Líneas de liquidación (una por alumno) ──────────────────────────────────
CREATE TABLE IF NOT EXISTS liquidacion_lineas (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    liquidacion_id      INTEGER NOT NULL REFERENCES liquidaciones(id) ON DELETE RESTRICT,
    student_id          INTEGER NOT NULL REFERENCES alumnos(id)       ON DELETE RESTRICT,
    opening_fte_days    TEXT    NOT NULL,
    added_fte_days      TEXT    NOT NULL,
    used_fte_days       TEXT    NOT NULL,
    closing_fte_days    TEXT    NOT NULL,
    jornadas_generated  TEXT    NOT NULL,
    UNIQUE(liquidacion_id, student_id)
);

CREATE INDEX IF NOT EXISTS idx_lineas_liq    ON liquidacion_lineas(liquidacion_id);
CREATE INDEX IF NOT EXISTS idx_lineas_alumno ON liquidacion_lineas(student_id);

-- ─── Log de Auditoría ────────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS log_auditoria (
    id      INTEGER PRIMARY KEY AUTOINCREMENT,
    fecha   DATETIME NOT NULL,
    usuario TEXT     NOT NULL,
    accion  TEXT     NOT NULL,   -- "ejecutar_liquidacion", "cargar_contratos", etc.
    detalle TEXT,
    ip      TEXT
);

CREATE INDEX IF NOT EXISTS idx_log_fecha   ON log_auditoria(fecha);
CREATE INDEX IF NOT EXISTS idx_log_accion  ON log_auditoria(accion);
"""


def _ruta_db(db_path=None) -> Path:
    return Path(db_path) if db_path is not None else settings.LIQUIDACION_DB_PATH


def init_db(db_path=None) -> None:
    """Crea la BD y todas las tablas si no existen. Idempotente."""
    path = _ruta_db(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(path) as conn:
        conn.executescript(_SCHEMA)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.commit()
    logger.info("Base de datos de liquidaciones inicializada: %s", path)


@contextmanager
def get_db(db_path=None):
    """
    Context manager que entrega una conexión SQLite configurada.

    Uso:
        with get_db() as conn:
            rows = conn.execute("SELECT ...").fetchall()

    Hace commit al salir sin errores y rollback ante cualquier excepción.
    """
    conn = sqlite3.connect(_ruta_db(db_path), timeout=settings.SQLITE_BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row          # Filas accesibles por nombre de columna
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")  # WAL: lecturas no bloquean al escritor
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def a_decimal(valor) -> Decimal:
    """Convierte un valor leído de SQLite (TEXT, INTEGER o None) a Decimal."""
    if valor is None or valor == "":
        return Decimal(0)
    if isinstance(valor, float):
        return Decimal(str(valor))
    return Decimal(valor)


def _ahora() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


# ── CRUD: alumnos ─────────────────────────────────────────────────────────────

def insertar_alumno(
    conn: sqlite3.Connection,
    first_names: str,
    last_names: str = "",
    dni_nie: str | None = None,
    course_code: str | None = None,
    eligible_from_date: str | None = None,
) -> int:
    """Inserta un alumno y retorna su id."""
    cursor = conn.execute(
        """INSERT INTO alumnos (first_names, last_names, dni_nie, course_code,
                                eligible_from_date, fecha_creacion)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (
            " ".join(first_names.split()),
            " ".join((last_names or "").split()),
            dni_nie.strip().upper() if dni_nie else None,
            course_code,
            eligible_from_date,
            _ahora(),
        ),
    )
    return cursor.lastrowid


def buscar_alumno_por_dni(conn: sqlite3.Connection, dni_nie: str) -> sqlite3.Row | None:
    """Busca un alumno por DNI/NIE (sin distinguir mayúsculas)."""
    return conn.execute(
        "SELECT * FROM alumnos WHERE dni_nie = ?", (dni_nie.strip().upper(),)
    ).fetchone()


# ── CRUD: contratos ───────────────────────────────────────────────────────────

def insertar_contrato(conn: sqlite3.Connection, contrato: dict) -> int:
    """
    Inserta un contrato de un alumno.

    ``contrato`` debe traer alumno_id, fecha_inicio y porcentaje_jornada;
    el resto de campos es opcional.
    """
    porcentaje = a_decimal(contrato["porcentaje_jornada"])
    if not (Decimal(0) < porcentaje <= Decimal(100)):
        raise ValueError(
            f"porcentaje_jornada debe estar entre 0 y 100, se recibió: {porcentaje}"
        )
    fecha_fin = contrato.get("fecha_fin") or None
    if fecha_fin is not None and fecha_fin < contrato["fecha_inicio"]:
        raise ValueError(
            f"fecha_fin ({fecha_fin}) es anterior a fecha_inicio ({contrato['fecha_inicio']})"
        )
    cursor = conn.execute(
        """INSERT INTO contratos (alumno_id, cif_empresa, nombre_empresa,
                                  fecha_inicio, fecha_fin, porcentaje_jornada,
                                  tipo_contrato, horas_semanales, fecha_importacion)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            contrato["alumno_id"],
            contrato.get("cif_empresa"),
            contrato.get("nombre_empresa", ""),
            contrato["fecha_inicio"],
            fecha_fin,
            porcentaje,
            contrato.get("tipo_contrato"),
            contrato.get("horas_semanales"),
            _ahora(),
        ),
    )
    return cursor.lastrowid


# ── CRUD: log_auditoria ───────────────────────────────────────────────────────

def registrar_auditoria(
    conn: sqlite3.Connection,
    usuario: str,
    accion: str,
    detalle: str = "",
    ip: str = "",
) -> None:
    """Registra una acción en el log de auditoría."""
    conn.execute(
        "INSERT INTO log_auditoria (fecha, usuario, accion, detalle, ip) VALUES (?, ?, ?, ?, ?)",
        (datetime.now(timezone.utc).isoformat(), usuario, accion, detalle, ip),
    )
