"""
Calculadora de jornadas — convierte días FTE acumulados en jornadas completas.

Una jornada equivale a ``target_fte_days`` días FTE:
  - six_months → 130 días
  - one_year   → 260 días

Modos:
  - individual: cada alumno completa sus propias jornadas;
      jornadas = floor(disponible / objetivo), usado = jornadas × objetivo.
  - pooled (combinada): se suman los días de todos los alumnos;
      total_jornadas = floor(bolsa / objetivo), y el total usado se reparte
      entre alumnos con ``asignar_pool_por_id``.

Invariantes:
  closing = opening + added − used, closing >= 0
  sum(used) == total_jornadas × objetivo
  individual: closing < objetivo

Funciones puras: no leen ni escriben en la base de datos.
"""

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal

from src.liquidacion.acumulados import SaldoAlumno
from src.liquidacion.errores import ParametrosInvalidos

OBJETIVOS = {
    "six_months": 130,
    "one_year": 260,
}

MODO_INDIVIDUAL = "individual"
MODO_COMBINADO = "pooled"
MODOS = (MODO_INDIVIDUAL, MODO_COMBINADO)

_CERO = Decimal(0)
_CUATRO_DECIMALES = Decimal("0.0001")


# ── Tipos de datos ────────────────────────────────────────────────────────────

@dataclass
class LineaCalculada:
    """Resultado del cálculo para un alumno."""
    student_id: int
    first_names: str
    last_names: str
    eligible_from_date: str | None
    opening_fte_days: Decimal
    added_fte_days: Decimal
    available_fte_days: Decimal
    eligible: bool
    jornadas_possible: Decimal
    used_fte_days: Decimal
    closing_fte_days: Decimal


@dataclass
class ResultadoJornadas:
    """Resultado completo: líneas por alumno y agregados de la bolsa."""
    target_fte_days: int
    modo: str
    lineas: list[LineaCalculada] = field(default_factory=list)
    total_available_fte_days: Decimal = _CERO
    total_jornadas: int = 0
    total_used_fte_days: Decimal = _CERO

    @property
    def total_remainder_fte_days(self) -> Decimal:
        return self.total_available_fte_days - self.total_used_fte_days


# ── Validación ────────────────────────────────────────────────────────────────

def objetivo_en_dias(target: str) -> int:
    """Días FTE de una jornada para el objetivo dado."""
    try:
        return OBJETIVOS[target]
    except (KeyError, TypeError):
        raise ParametrosInvalidos(
            f"target desconocido: '{target}' (valores: {', '.join(OBJETIVOS)})"
        ) from None


def validar_modo(modo: str) -> str:
    if modo not in MODOS:
        raise ParametrosInvalidos(
            f"mode desconocido: '{modo}' (valores: {', '.join(MODOS)})"
        )
    return modo


# ── Reparto de la bolsa combinada ─────────────────────────────────────────────

def asignar_pool_por_id(
    disponibles: dict[int, Decimal], total_a_usar: Decimal
) -> dict[int, Decimal]:
    """
    Reparte ``total_a_usar`` días entre alumnos en orden de student_id ascendente.

    Cada alumno aporta ``min(disponible, pendiente)`` hasta agotar el total.
    Los primeros alumnos absorben la bolsa; los últimos pueden quedar con
    saldo mayor que una jornada.

    Garantiza sum(resultado) == total_a_usar si total_a_usar <= sum(disponibles).
    """
    pendiente = total_a_usar
    asignado: dict[int, Decimal] = {}
    for student_id in sorted(disponibles):
        usado = min(disponibles[student_id], pendiente)
        asignado[student_id] = usado
        pendiente -= usado
    return asignado


# ── Cálculo ───────────────────────────────────────────────────────────────────

def calcular_jornadas(
    saldos: dict[int, SaldoAlumno] | list[SaldoAlumno],
    target_fte_days: int,
    modo: str,
) -> ResultadoJornadas:
    """
    Calcula jornadas, días usados y remanente por alumno y para la bolsa.

    Alumnos con disponible 0 no aparecen en el resultado. Las líneas salen
    ordenadas por student_id.
    """
    validar_modo(modo)
    if target_fte_days is None or target_fte_days <= 0:
        raise ParametrosInvalidos(
            f"target_fte_days debe ser positivo, se recibió: {target_fte_days}"
        )

    if isinstance(saldos, dict):
        saldos = list(saldos.values())
    con_saldo = sorted(
        (s for s in saldos if s.available_fte_days > 0),
        key=lambda s: s.student_id,
    )

    objetivo = Decimal(target_fte_days)
    resultado = ResultadoJornadas(target_fte_days=target_fte_days, modo=modo)
    resultado.total_available_fte_days = sum(
        (s.available_fte_days for s in con_saldo), _CERO
    )

    if modo == MODO_INDIVIDUAL:
        for s in con_saldo:
            disponible = s.available_fte_days
            jornadas = disponible // objetivo
            usado = jornadas * objetivo
            resultado.lineas.append(_linea(s, jornadas >= 1, jornadas, usado))
            resultado.total_jornadas += int(jornadas)
            resultado.total_used_fte_days += usado
        return resultado

    # Modo combinado
    total_jornadas = resultado.total_available_fte_days // objetivo
    total_usado = total_jornadas * objetivo
    asignado = asignar_pool_por_id(
        {s.student_id: s.available_fte_days for s in con_saldo}, total_usado
    )
    for s in con_saldo:
        usado = asignado[s.student_id]
        cuota = (usado / objetivo).quantize(_CUATRO_DECIMALES, rounding=ROUND_DOWN)
        resultado.lineas.append(_linea(s, usado > 0, cuota, usado))
    resultado.total_jornadas = int(total_jornadas)
    resultado.total_used_fte_days = total_usado
    return resultado


def _linea(s: SaldoAlumno, elegible: bool, jornadas: Decimal, usado: Decimal) -> LineaCalculada:
    return LineaCalculada(
        student_id=s.student_id,
        first_names=s.first_names,
        last_names=s.last_names,
        eligible_from_date=s.eligible_from_date,
        opening_fte_days=s.opening_fte_days,
        added_fte_days=s.added_fte_days,
        available_fte_days=s.available_fte_days,
        eligible=elegible,
        jornadas_possible=jornadas,
        used_fte_days=usado,
        closing_fte_days=s.available_fte_days - usado,
    )
