"""
Lector de acumulados — saldo de apertura y días FTE sumados por alumno.

Para un rango [fecha_inicio, fecha_fin] entrega, por alumno:
  - opening_fte_days: closing_fte_days de su última línea de liquidación (0 si nunca).
  - added_fte_days:   días FTE de sus contratos dentro del rango.

Un día de contrato al 50% de jornada suma 0.5 días FTE. Se cuentan días
naturales con ambos extremos incluidos, y solo desde eligible_from_date.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Protocol

from config import settings
from src.liquidacion.errores import DatosNoDisponibles, ParametrosInvalidos, RangoSuperpuesto
from src.liquidacion.models import a_decimal

logger = logging.getLogger(__name__)

CIEN = Decimal(100)


# ── Tipos de datos ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Periodo:
    """Rango efectivo de una liquidación, ya ajustado al último cierre."""
    fecha_inicio: date
    fecha_fin: date
    ultimo_cierre: date | None = None
    min_eligible_date: date | None = None
    inicio_ajustado: bool = False


@dataclass(frozen=True)
class SaldoAlumno:
    """Saldo de un alumno al inicio del período más lo acumulado en él."""
    student_id: int
    first_names: str
    last_names: str
    eligible_from_date: str | None
    opening_fte_days: Decimal
    added_fte_days: Decimal

    @property
    def available_fte_days(self) -> Decimal:
        return self.opening_fte_days + self.added_fte_days


class FuenteAcumulados(Protocol):
    """Cualquier origen de días FTE acumulados por alumno."""

    def dias_fte(
        self, conn: sqlite3.Connection, fecha_inicio: date, fecha_fin: date
    ) -> dict[int, Decimal]:
        ...


# ── Fechas ────────────────────────────────────────────────────────────────────

def parsear_fecha(texto, campo: str) -> date:
    """Parsea "YYYY-MM-DD". Lanza ParametrosInvalidos si no es una fecha válida."""
    if isinstance(texto, date):
        return texto
    if not texto or not isinstance(texto, str):
        raise ParametrosInvalidos(f"{campo} es requerida (YYYY-MM-DD)")
    texto = texto.strip()
    try:
        if len(texto) != 10:
            raise ValueError(texto)
        return date.fromisoformat(texto)
    except ValueError:
        raise ParametrosInvalidos(
            f"{campo} no es una fecha válida (YYYY-MM-DD): '{texto}'"
        ) from None


def _a_fecha(valor) -> date | None:
    if not valor:
        return None
    return date.fromisoformat(str(valor)[:10])


# ── Fuente por defecto: contratos en SQLite ───────────────────────────────────

class FuenteContratosSQLite:
    """Calcula los días FTE desde la tabla ``contratos``."""

    def dias_fte(
        self, conn: sqlite3.Connection, fecha_inicio: date, fecha_fin: date
    ) -> dict[int, Decimal]:
        rows = conn.execute(
            """SELECT c.alumno_id, c.fecha_inicio, c.fecha_fin, c.porcentaje_jornada,
                      a.eligible_from_date
               FROM contratos c
               JOIN alumnos a ON a.id = c.alumno_id
               WHERE c.fecha_inicio <= :fin
                 AND (c.fecha_fin IS NULL OR c.fecha_fin >= :inicio)
                 AND (a.eligible_from_date IS NULL OR a.eligible_from_date <= :fin)
               ORDER BY c.alumno_id, c.fecha_inicio, c.id""",
            {"inicio": fecha_inicio.isoformat(), "fin": fecha_fin.isoformat()},
        ).fetchall()

        acumulado: dict[int, Decimal] = {}
        for r in rows:
            desde = max(
                _a_fecha(r["fecha_inicio"]),
                _a_fecha(r["eligible_from_date"]) or fecha_inicio,
                fecha_inicio,
            )
            hasta = min(_a_fecha(r["fecha_fin"]) or fecha_fin, fecha_fin)
            if hasta < desde:
                continue
            dias = (hasta - desde).days + 1
            fte = Decimal(dias) * a_decimal(r["porcentaje_jornada"]) / CIEN
            acumulado[r["alumno_id"]] = acumulado.get(r["alumno_id"], Decimal(0)) + fte
        return acumulado


# ── Resolución del período ────────────────────────────────────────────────────

def ultima_liquidacion_fin(conn: sqlite3.Connection) -> date | None:
    """end_date de la liquidación más reciente (consulta fresca, sin caché)."""
    row = conn.execute(
        "SELECT end_date FROM liquidaciones ORDER BY end_date DESC, id DESC LIMIT 1"
    ).fetchone()
    return _a_fecha(row["end_date"]) if row else None


def fecha_elegible_minima(conn: sqlite3.Connection) -> date | None:
    """Primer día en que algún alumno empieza a acumular días FTE."""
    row = conn.execute(
        """SELECT MIN(MAX(c.fecha_inicio, COALESCE(a.eligible_from_date, c.fecha_inicio)))
           FROM contratos c
           JOIN alumnos a ON a.id = c.alumno_id
           WHERE c.fecha_fin IS NULL
              OR a.eligible_from_date IS NULL
              OR c.fecha_fin >= a.eligible_from_date"""
    ).fetchone()
    return _a_fecha(row[0]) if row else None


def resolver_periodo(
    conn: sqlite3.Connection,
    fecha_fin: date,
    fecha_inicio: date | None = None,
    estricto: bool = False,
) -> Periodo:
    """
    Determina el rango efectivo [inicio, fin] de una liquidación.

    - Con liquidaciones previas: inicio = día siguiente al último end_date.
      Un fecha_inicio anterior se ajusta a ese día, o con ``estricto=True``
      se rechaza con RangoSuperpuesto.
    - Sin liquidaciones previas: fecha_inicio pedida, si no la fecha elegible
      mínima, si no settings.LIQUIDACION_FECHA_MINIMA. Nunca antes de la
      fecha elegible mínima, salvo que fecha_fin también lo sea: entonces el
      rango es [fecha_fin, fecha_fin] y no acumula nada.
    """
    try:
        ultimo = ultima_liquidacion_fin(conn)
        minima = fecha_elegible_minima(conn)
    except sqlite3.Error as exc:
        logger.error("No se pudo leer el histórico de liquidaciones: %s", exc)
        raise DatosNoDisponibles(
            "No se pudo leer el histórico de liquidaciones"
        ) from exc

    ajustado = False
    if ultimo is not None:
        siguiente = ultimo + timedelta(days=1)
        if fecha_fin <= ultimo:
            raise RangoSuperpuesto(
                f"El período hasta {fecha_fin.isoformat()} ya está liquidado "
                f"(última liquidación hasta {ultimo.isoformat()})"
            )
        if fecha_inicio is None:
            inicio = siguiente
        elif fecha_inicio < siguiente:
            if estricto:
                raise RangoSuperpuesto(
                    f"La fecha desde {fecha_inicio.isoformat()} se superpone con la "
                    f"última liquidación (hasta {ultimo.isoformat()}); "
                    f"debe ser {siguiente.isoformat()} o posterior"
                )
            inicio = siguiente
            ajustado = True
        else:
            inicio = fecha_inicio
    else:
        inicio = fecha_inicio or minima or date.fromisoformat(settings.LIQUIDACION_FECHA_MINIMA)
        if minima is not None and inicio < minima:
            inicio = minima
            ajustado = fecha_inicio is not None
        # Rango entero antes del primer día elegible: un solo día, sin acumulado
        if fecha_fin < inicio and (fecha_inicio is None or fecha_inicio <= fecha_fin):
            inicio = fecha_fin

    if fecha_fin < inicio:
        raise ParametrosInvalidos(
            f"La fecha hasta ({fecha_fin.isoformat()}) es anterior a la fecha "
            f"desde efectiva ({inicio.isoformat()})"
        )

    return Periodo(
        fecha_inicio=inicio,
        fecha_fin=fecha_fin,
        ultimo_cierre=ultimo,
        min_eligible_date=minima,
        inicio_ajustado=ajustado,
    )


# ── Lectura de saldos ─────────────────────────────────────────────────────────

def _saldos_apertura(conn: sqlite3.Connection) -> dict[int, Decimal]:
    """closing_fte_days de la última línea de cada alumno."""
    rows = conn.execute(
        """SELECT l.student_id, l.closing_fte_days
           FROM liquidacion_lineas l
           JOIN liquidaciones q ON q.id = l.liquidacion_id
           ORDER BY q.end_date ASC, q.id ASC"""
    ).fetchall()
    # La última fila de cada alumno pisa a las anteriores
    return {r["student_id"]: a_decimal(r["closing_fte_days"]) for r in rows}


def leer_acumulados(
    conn: sqlite3.Connection,
    fecha_inicio: date,
    fecha_fin: date,
    alumno_ids=None,
    fuente: FuenteAcumulados | None = None,
) -> dict[int, SaldoAlumno]:
    """
    Lee saldo de apertura y días añadidos de cada alumno en el rango.

    Args:
        conn:         Conexión SQLite.
        fecha_inicio: Primer día del rango (incluido).
        fecha_fin:    Último día del rango (incluido).
        alumno_ids:   Restringe a estos alumnos; ``None`` = todos.
        fuente:       Origen de los días FTE; por defecto los contratos en BD.

    Returns:
        dict student_id → SaldoAlumno, con todos los alumnos pedidos
        (también los que tienen saldo 0).

    Raises:
        DatosNoDisponibles si falla la lectura. No escribe nada.
    """
    fuente = fuente or FuenteContratosSQLite()
    try:
        alumnos = conn.execute(
            """SELECT id, first_names, last_names, eligible_from_date
               FROM alumnos ORDER BY id"""
        ).fetchall()
        aperturas = _saldos_apertura(conn)
        anadidos = fuente.dias_fte(conn, fecha_inicio, fecha_fin)
    except sqlite3.Error as exc:
        logger.error("Error leyendo acumulados %s → %s: %s", fecha_inicio, fecha_fin, exc)
        raise DatosNoDisponibles("No se pudieron leer los días acumulados de los alumnos") from exc

    filtro = set(alumno_ids) if alumno_ids is not None else None
    saldos: dict[int, SaldoAlumno] = {}
    for a in alumnos:
        if filtro is not None and a["id"] not in filtro:
            continue
        anadido = anadidos.get(a["id"], Decimal(0))
        if anadido < 0:
            raise DatosNoDisponibles(
                f"La fuente de acumulados devolvió días negativos para el alumno {a['id']}"
            )
        saldos[a["id"]] = SaldoAlumno(
            student_id=a["id"],
            first_names=a["first_names"],
            last_names=a["last_names"],
            eligible_from_date=a["eligible_from_date"],
            opening_fte_days=aperturas.get(a["id"], Decimal(0)),
            added_fte_days=anadido,
        )

    logger.debug(
        "Acumulados %s → %s: %d alumnos, %d con días añadidos",
        fecha_inicio, fecha_fin, len(saldos), sum(1 for s in saldos.values() if s.added_fte_days),
    )
    return saldos
