"""
Motor de Liquidación — previsualización y ejecución.

Flujo:
  1. Se resuelve el período efectivo (día siguiente a la última liquidación).
  2. Se leen saldos de apertura y días FTE añadidos por alumno.
  3. Se calculan jornadas según objetivo (130 / 260 días) y modo.
  4. previsualizar(): devuelve el resultado sin escribir nada.
     ejecutar_liquidacion(): recalcula desde cero y registra cabecera,
     una línea por alumno con saldo y la auditoría, en una sola transacción.

Solo puede haber una ejecución en curso: un candado en el proceso más
``BEGIN IMMEDIATE`` en SQLite para los demás procesos (workers de gunicorn).
La previsualización no toma ningún bloqueo.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from src.liquidacion.acumulados import (
    FuenteAcumulados,
    leer_acumulados,
    parsear_fecha,
    resolver_periodo,
)
from src.liquidacion.calculadora import (
    MODO_INDIVIDUAL,
    ResultadoJornadas,
    calcular_jornadas,
    objetivo_en_dias,
    validar_modo,
)
from src.liquidacion.errores import (
    ErrorPersistencia,
    LiquidacionEnCurso,
    NadaQueLiquidar,
)
from src.liquidacion.models import a_decimal, registrar_auditoria

logger = logging.getLogger(__name__)

_candado_ejecucion = threading.Lock()


# ── Parámetros ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ParametrosLiquidacion:
    """Parámetros de una liquidación, ya validados."""
    fecha_fin: date
    target: str
    modo: str
    fecha_inicio: date | None = None

    @property
    def target_fte_days(self) -> int:
        return objetivo_en_dias(self.target)

    @classmethod
    def desde_dict(cls, data, con_valores_por_defecto: bool = False) -> "ParametrosLiquidacion":
        """
        Construye y valida parámetros desde un dict (query string o body JSON).

        Con ``con_valores_por_defecto`` (previsualización): end_date = hoy,
        target = six_months, mode = individual si no vienen.
        """
        data = data or {}
        fin = data.get("end_date") or None
        target = data.get("target") or None
        modo = data.get("mode") or None
        if con_valores_por_defecto:
            fin = fin or date.today().isoformat()
            target = target or "six_months"
            modo = modo or MODO_INDIVIDUAL

        inicio = data.get("start_date") or None
        params = cls(
            fecha_fin=parsear_fecha(fin, "end_date"),
            target=target,
            modo=modo,
            fecha_inicio=parsear_fecha(inicio, "start_date") if inicio else None,
        )
        objetivo_en_dias(params.target)
        validar_modo(params.modo)
        return params


# ── Serialización ─────────────────────────────────────────────────────────────

def _fte(valor: Decimal) -> float:
    """Días FTE para JSON: precisión completa, como número."""
    return float(valor)


def _jornadas(valor: Decimal) -> int | float:
    return int(valor) if valor == valor.to_integral_value() else float(valor)


def _iso(valor) -> str | None:
    return valor.isoformat() if valor else None


# ── Cálculo común ─────────────────────────────────────────────────────────────

def _calcular(conn, params: ParametrosLiquidacion, fuente, estricto: bool):
    periodo = resolver_periodo(
        conn, params.fecha_fin, params.fecha_inicio, estricto=estricto
    )
    saldos = leer_acumulados(
        conn, periodo.fecha_inicio, periodo.fecha_fin, fuente=fuente
    )
    resultado = calcular_jornadas(saldos, params.target_fte_days, params.modo)
    return periodo, resultado


# ── Previsualización ──────────────────────────────────────────────────────────

def previsualizar(
    conn: sqlite3.Connection,
    params: ParametrosLiquidacion,
    fuente: FuenteAcumulados | None = None,
) -> dict:
    """
    Calcula la liquidación que se registraría con estos parámetros, sin escribir.

    Un fecha_inicio que se superpone con la última liquidación se ajusta al
    día siguiente y se informa en ``start_date``. Cero jornadas es un
    resultado válido (no es error).
    """
    periodo, resultado = _calcular(conn, params, fuente, estricto=False)
    return {
        "start_date":                periodo.fecha_inicio.isoformat(),
        "end_date":                  periodo.fecha_fin.isoformat(),
        "min_eligible_date":         _iso(periodo.min_eligible_date),
        "last_liquidation_end_date": _iso(periodo.ultimo_cierre),
        "start_date_adjusted":       periodo.inicio_ajustado,
        "target":                    params.target,
        "mode":                      params.modo,
        "target_fte_days":           resultado.target_fte_days,
        "pool":                      _pool(resultado),
        "students": [
            {
                "student_id":         ln.student_id,
                "first_names":        ln.first_names,
                "last_names":         ln.last_names,
                "eligible_from_date": ln.eligible_from_date,
                "opening_fte_days":   _fte(ln.opening_fte_days),
                "added_fte_days":     _fte(ln.added_fte_days),
                "available_fte_days": _fte(ln.available_fte_days),
                "eligible":           ln.eligible,
                "jornadas_possible":  _jornadas(ln.jornadas_possible),
                "used_fte_days":      _fte(ln.used_fte_days),
                "closing_fte_days":   _fte(ln.closing_fte_days),
            }
            for ln in resultado.lineas
        ],
    }


def _pool(resultado: ResultadoJornadas) -> dict:
    return {
        "total_available_fte_days": _fte(resultado.total_available_fte_days),
        "total_jornadas":           resultado.total_jornadas,
        "total_used_fte_days":      _fte(resultado.total_used_fte_days),
        "total_remainder_fte_days": _fte(resultado.total_remainder_fte_days),
    }


# ── Ejecución ─────────────────────────────────────────────────────────────────

@contextmanager
def _transaccion_exclusiva(conn: sqlite3.Connection):
    """
    Una sola ejecución a la vez, con commit o rollback garantizado.

    Candado ocupado o BD bloqueada por otro proceso → LiquidacionEnCurso.
    Error de SQLite dentro de la transacción → rollback y ErrorPersistencia.
    """
    if not _candado_ejecucion.acquire(blocking=False):
        raise LiquidacionEnCurso(
            "Ya hay una liquidación en curso. Intente nuevamente en unos segundos."
        )
    try:
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as exc:
            mensaje = str(exc).lower()
            if "locked" in mensaje or "busy" in mensaje:
                raise LiquidacionEnCurso(
                    "Ya hay una liquidación en curso. Intente nuevamente en unos segundos."
                ) from exc
            raise ErrorPersistencia(f"No se pudo iniciar la transacción: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("Liquidación revertida por error de base de datos: %s", exc)
            raise ErrorPersistencia(
                "No se pudo registrar la liquidación; no se guardó ningún cambio"
            ) from exc
        except Exception:
            conn.rollback()
            raise
    finally:
        _candado_ejecucion.release()


def ejecutar_liquidacion(
    conn: sqlite3.Connection,
    params: ParametrosLiquidacion,
    usuario: str,
    ip: str = "",
    fuente: FuenteAcumulados | None = None,
) -> dict:
    """
    Ejecuta y registra una liquidación.

    Args:
        conn:    Conexión SQLite sin transacción abierta.
        params:  Parámetros validados.
        usuario: Quién ejecuta (queda en created_by y en auditoría).
        ip:      IP del usuario.
        fuente:  Origen de días FTE; por defecto los contratos en BD.

    Returns:
        {"liquidation": {...}, "lines": [...]} tal como quedó registrada.

    Raises:
        RangoSuperpuesto, ParametrosInvalidos, DatosNoDisponibles,
        NadaQueLiquidar, LiquidacionEnCurso, ErrorPersistencia.
    """
    with _transaccion_exclusiva(conn):
        # Se recalcula dentro del bloqueo: la previsualización es solo orientativa
        periodo, resultado = _calcular(conn, params, fuente, estricto=True)

        if resultado.total_jornadas < 1:
            raise NadaQueLiquidar(
                "Aún no alcanza para liquidar al menos 1 jornada completa "
                f"({resultado.target_fte_days} días) con el objetivo seleccionado"
            )

        ahora = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
        cursor = conn.execute(
            """INSERT INTO liquidaciones (start_date, end_date, target, mode,
                                          target_fte_days, total_students, total_jornadas,
                                          total_fte_days_used, created_at, created_by)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                periodo.fecha_inicio.isoformat(),
                periodo.fecha_fin.isoformat(),
                params.target,
                params.modo,
                resultado.target_fte_days,
                len(resultado.lineas),
                resultado.total_jornadas,
                resultado.total_used_fte_days,
                ahora,
                usuario,
            ),
        )
        liquidacion_id = cursor.lastrowid

        # Una línea por alumno con saldo, aunque no genere jornadas:
        # su closing es el opening de la próxima liquidación.
        for ln in resultado.lineas:
            conn.execute(
                """INSERT INTO liquidacion_lineas (liquidacion_id, student_id,
                                                   opening_fte_days, added_fte_days,
                                                   used_fte_days, closing_fte_days,
                                                   jornadas_generated)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    liquidacion_id,
                    ln.student_id,
                    ln.opening_fte_days,
                    ln.added_fte_days,
                    ln.used_fte_days,
                    ln.closing_fte_days,
                    ln.jornadas_possible,
                ),
            )

        registrar_auditoria(
            conn, usuario, "ejecutar_liquidacion",
            f"Liquidación id={liquidacion_id} {periodo.fecha_inicio} → {periodo.fecha_fin} "
            f"({params.target}, {params.modo}): {resultado.total_jornadas} jornadas, "
            f"{resultado.total_used_fte_days} días usados, {len(resultado.lineas)} alumnos",
            ip,
        )

    logger.info(
        "Liquidación id=%d registrada por %s: %s → %s, %d jornadas (%s, %s)",
        liquidacion_id, usuario, periodo.fecha_inicio, periodo.fecha_fin,
        resultado.total_jornadas, params.target, params.modo,
    )
    return obtener_liquidacion(conn, liquidacion_id)


# ── Consultas ─────────────────────────────────────────────────────────────────

def _cabecera(row: sqlite3.Row) -> dict:
    return {
        "id":                  row["id"],
        "start_date":          row["start_date"],
        "end_date":            row["end_date"],
        "target":              row["target"],
        "mode":                row["mode"],
        "target_fte_days":     row["target_fte_days"],
        "total_students":      row["total_students"],
        "total_jornadas":      row["total_jornadas"],
        "total_fte_days_used": _fte(a_decimal(row["total_fte_days_used"])),
        "created_at":          row["created_at"],
        "created_by":          row["created_by"],
    }


def listar_liquidaciones(conn: sqlite3.Connection) -> list[dict]:
    """Histórico de liquidaciones, la más reciente primero."""
    rows = conn.execute(
        "SELECT * FROM liquidaciones ORDER BY end_date DESC, id DESC"
    ).fetchall()
    return [_cabecera(r) for r in rows]


def obtener_liquidacion(conn: sqlite3.Connection, liquidacion_id: int) -> dict | None:
    """
    Retorna una liquidación con sus líneas.

    Returns None si la liquidación no existe.
    """
    liq = conn.execute(
        "SELECT * FROM liquidaciones WHERE id = ?", (liquidacion_id,)
    ).fetchone()
    if liq is None:
        return None

    lineas = conn.execute(
        """SELECT l.id, l.student_id, a.first_names, a.last_names,
                  l.opening_fte_days, l.added_fte_days, l.used_fte_days,
                  l.closing_fte_days, l.jornadas_generated
           FROM liquidacion_lineas l
           JOIN alumnos a ON a.id = l.student_id
           WHERE l.liquidacion_id = ?
           ORDER BY l.student_id""",
        (liquidacion_id,),
    ).fetchall()

    return {
        "liquidation": _cabecera(liq),
        "lines": [
            {
                "id":                 ln["id"],
                "student_id":         ln["student_id"],
                "first_names":        ln["first_names"],
                "last_names":         ln["last_names"],
                "opening_fte_days":   _fte(a_decimal(ln["opening_fte_days"])),
                "added_fte_days":     _fte(a_decimal(ln["added_fte_days"])),
                "used_fte_days":      _fte(a_decimal(ln["used_fte_days"])),
                "closing_fte_days":   _fte(a_decimal(ln["closing_fte_days"])),
                "jornadas_generated": _jornadas(a_decimal(ln["jornadas_generated"])),
            }
            for ln in lineas
        ],
    }
