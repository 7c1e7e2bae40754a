"""Tests del lector de acumulados y la resolución del período."""

import sqlite3
from datetime import date
from decimal import Decimal

import pytest

from src.liquidacion.acumulados import (
    FuenteContratosSQLite,
    leer_acumulados,
    parsear_fecha,
    resolver_periodo,
)
from src.liquidacion.errores import (
    DatosNoDisponibles,
    ParametrosInvalidos,
    RangoSuperpuesto,
)


def _registrar_liquidacion(conn, inicio, fin, cierres=None):
    """Inserta una liquidación ya cerrada con {student_id: closing}."""
    cursor = conn.execute(
        """INSERT INTO liquidaciones (start_date, end_date, target, mode, target_fte_days,
                                      total_students, total_jornadas, total_fte_days_used,
                                      created_at, created_by)
           VALUES (?, ?, 'six_months', 'individual', 130, ?, 1, '130', '2025-01-01T00:00:00', 'test')""",
        (inicio, fin, len(cierres or {})),
    )
    for student_id, cierre in (cierres or {}).items():
        conn.execute(
            """INSERT INTO liquidacion_lineas (liquidacion_id, student_id, opening_fte_days,
                                               added_fte_days, used_fte_days, closing_fte_days,
                                               jornadas_generated)
               VALUES (?, ?, '0', '0', '0', ?, '0')""",
            (cursor.lastrowid, student_id, str(cierre)),
        )
    return cursor.lastrowid


class TestParsearFecha:
    def test_fecha_valida(self):
        assert parsear_fecha("2025-06-30", "end_date") == date(2025, 6, 30)

    @pytest.mark.parametrize("texto", ["", None, "30/06/2025", "2025-6-30", "2025-02-30"])
    def test_fecha_invalida(self, texto):
        with pytest.raises(ParametrosInvalidos):
            parsear_fecha(texto, "end_date")


class TestFuenteContratos:
    def test_media_jornada(self, conn, crear_alumno):
        """10 días al 50% suman 5 días FTE."""
        a = crear_alumno("Ana", "2025-01-01", "2025-01-10", porcentaje=50)
        dias = FuenteContratosSQLite().dias_fte(conn, date(2025, 1, 1), date(2025, 1, 31))
        assert dias == {a: Decimal(5)}

    def test_contrato_vigente_hasta_fin_de_rango(self, conn, crear_alumno):
        a = crear_alumno("Ana", "2025-01-15", None)
        dias = FuenteContratosSQLite().dias_fte(conn, date(2025, 1, 1), date(2025, 1, 31))
        assert dias[a] == 17

    def test_recorte_al_rango(self, conn, crear_alumno):
        a = crear_alumno("Ana", "2024-12-01", "2025-03-01")
        dias = FuenteContratosSQLite().dias_fte(conn, date(2025, 2, 1), date(2025, 2, 28))
        assert dias[a] == 28

    def test_solo_desde_eligible_from_date(self, conn, crear_alumno):
        a = crear_alumno("Ana", "2025-01-01", None, eligible_from_date="2025-01-06")
        dias = FuenteContratosSQLite().dias_fte(conn, date(2025, 1, 1), date(2025, 1, 10))
        assert dias[a] == 5

    def test_contrato_fuera_de_rango(self, conn, crear_alumno):
        crear_alumno("Ana", "2024-01-01", "2024-12-31")
        dias = FuenteContratosSQLite().dias_fte(conn, date(2025, 1, 1), date(2025, 1, 31))
        assert dias == {}


class TestResolverPeriodo:
    def test_sin_liquidaciones_usa_fecha_elegible_minima(self, conn, crear_alumno):
        crear_alumno("Ana", "2025-03-01", None, eligible_from_date="2025-03-15")
        periodo = resolver_periodo(conn, date(2025, 6, 30))
        assert periodo.fecha_inicio == date(2025, 3, 15)
        assert periodo.ultimo_cierre is None
        assert periodo.inicio_ajustado is False

    def test_sin_datos_usa_fecha_minima_configurada(self, conn):
        periodo = resolver_periodo(conn, date(2025, 6, 30))
        assert periodo.fecha_inicio == date(2020, 1, 1)
        assert periodo.min_eligible_date is None

    def test_continua_tras_ultima_liquidacion(self, conn):
        _registrar_liquidacion(conn, "2025-01-01", "2025-06-30")
        periodo = resolver_periodo(conn, date(2025, 12, 31))
        assert periodo.fecha_inicio == date(2025, 7, 1)
        assert periodo.ultimo_cierre == date(2025, 6, 30)

    def test_inicio_superpuesto_se_ajusta(self, conn):
        _registrar_liquidacion(conn, "2025-01-01", "2025-06-30")
        periodo = resolver_periodo(conn, date(2025, 12, 31), date(2025, 6, 1))
        assert periodo.fecha_inicio == date(2025, 7, 1)
        assert periodo.inicio_ajustado is True

    def test_inicio_superpuesto_estricto(self, conn):
        _registrar_liquidacion(conn, "2025-01-01", "2025-06-30")
        with pytest.raises(RangoSuperpuesto):
            resolver_periodo(conn, date(2025, 12, 31), date(2025, 6, 1), estricto=True)

    def test_fin_ya_liquidado(self, conn):
        _registrar_liquidacion(conn, "2025-01-01", "2025-06-30")
        with pytest.raises(RangoSuperpuesto):
            resolver_periodo(conn, date(2025, 6, 30))

    def test_fin_anterior_al_inicio(self, conn):
        with pytest.raises(ParametrosInvalidos):
            resolver_periodo(conn, date(2025, 1, 1), date(2025, 2, 1))

    def test_fin_antes_del_primer_dia_elegible(self, conn, crear_alumno):
        """Sin fecha desde y fin anterior a todo contrato: rango de un día, sin error."""
        a = crear_alumno("Ana", "2025-03-01", None)
        periodo = resolver_periodo(conn, date(2025, 2, 28))
        assert periodo.fecha_inicio == date(2025, 2, 28)
        assert periodo.fecha_fin == date(2025, 2, 28)
        assert periodo.min_eligible_date == date(2025, 3, 1)

        saldos = leer_acumulados(conn, periodo.fecha_inicio, periodo.fecha_fin)
        assert saldos[a].available_fte_days == 0

    def test_inicio_pedido_antes_del_primer_dia_elegible(self, conn, crear_alumno):
        crear_alumno("Ana", "2025-03-01", None)
        periodo = resolver_periodo(conn, date(2025, 2, 28), date(2025, 2, 1))
        assert periodo.fecha_inicio == date(2025, 2, 28)
        assert periodo.inicio_ajustado is True

    def test_inicio_pedido_posterior_al_fin_con_contratos(self, conn, crear_alumno):
        crear_alumno("Ana", "2025-03-01", None)
        with pytest.raises(ParametrosInvalidos):
            resolver_periodo(conn, date(2025, 2, 28), date(2025, 4, 1))


class TestLeerAcumulados:
    def test_apertura_desde_ultima_linea(self, conn, crear_alumno):
        a = crear_alumno("Ana", "2025-07-01", "2025-07-10")
        _registrar_liquidacion(conn, "2025-01-01", "2025-03-31", {a: 40})
        _registrar_liquidacion(conn, "2025-04-01", "2025-06-30", {a: 15})

        saldos = leer_acumulados(conn, date(2025, 7, 1), date(2025, 7, 31))
        assert saldos[a].opening_fte_days == 15
        assert saldos[a].added_fte_days == 10
        assert saldos[a].available_fte_days == 25

    def test_incluye_alumnos_sin_saldo(self, conn):
        from src.liquidacion.models import insertar_alumno

        b = insertar_alumno(conn, "Beto", "Sin Contrato")
        saldos = leer_acumulados(conn, date(2025, 7, 1), date(2025, 7, 31))
        assert saldos[b].available_fte_days == 0

    def test_filtro_por_alumno(self, conn, crear_alumno):
        a = crear_alumno("Ana", "2025-07-01", None)
        crear_alumno("Beto", "2025-07-01", None)
        saldos = leer_acumulados(conn, date(2025, 7, 1), date(2025, 7, 31), alumno_ids=[a])
        assert list(saldos) == [a]

    def test_fuente_no_disponible(self, conn):
        class FuenteCaida:
            def dias_fte(self, conn, fecha_inicio, fecha_fin):
                raise sqlite3.OperationalError("no such table: contratos_externos")

        with pytest.raises(DatosNoDisponibles):
            leer_acumulados(conn, date(2025, 7, 1), date(2025, 7, 31), fuente=FuenteCaida())

    def test_fuente_con_dias_negativos(self, conn):
        from src.liquidacion.models import insertar_alumno

        a = insertar_alumno(conn, "Ana", "Prueba")

        class FuenteNegativa:
            def dias_fte(self, conn, fecha_inicio, fecha_fin):
                return {a: Decimal(-1)}

        with pytest.raises(DatosNoDisponibles):
            leer_acumulados(conn, date(2025, 7, 1), date(2025, 7, 31), fuente=FuenteNegativa())

    def test_no_escribe(self, conn, crear_alumno):
        crear_alumno("Ana", "2025-07-01", None)
        antes = conn.total_changes
        leer_acumulados(conn, date(2025, 7, 1), date(2025, 7, 31))
        assert conn.total_changes == antes
