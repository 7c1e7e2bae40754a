"""Tests para la lectura y carga de contratos."""

from decimal import Decimal

import pandas as pd
import pytest

from src.ingest.contratos_reader import (
    cargar_contratos,
    leer_contratos,
    parsear_fecha_celda,
    parsear_porcentaje,
)


CSV_CONTRATOS = """dni_nie;cif_empresa;nombre_empresa;fecha_inicio;fecha_fin;porcentaje_jornada;tipo_contrato;horas_semanales
11111111a;B12345678;Talleres Sur;01/01/2025;25/05/2025;100%;indefinido;40
22222222B;B87654321;Hostal Centro;2025-06-01;;50;temporal;20
33333333C;;Sin Fecha;;;100;;
99999999Z;B00000000;Otra;2025-01-01;2025-01-31;0,5;practicas;
"""


@pytest.fixture
def csv_contratos(tmp_path):
    path = tmp_path / "contratos.csv"
    path.write_text(CSV_CONTRATOS, encoding="utf-8")
    return path


class TestParseo:
    @pytest.mark.parametrize("valor,esperado", [
        ("100%", Decimal(100)),
        ("50", Decimal(50)),
        (75, Decimal(75)),
        ("0,5", Decimal(50)),
        ("62.5", Decimal("62.5")),
    ])
    def test_porcentaje(self, valor, esperado):
        assert parsear_porcentaje(valor) == esperado

    @pytest.mark.parametrize("valor", [None, "", "abc", "0", "120", float("nan")])
    def test_porcentaje_invalido(self, valor):
        assert parsear_porcentaje(valor) is None

    def test_fechas(self):
        assert parsear_fecha_celda("05/03/2025") == "2025-03-05"
        assert parsear_fecha_celda("2025-03-05") == "2025-03-05"
        assert parsear_fecha_celda(pd.Timestamp("2025-03-05 10:30")) == "2025-03-05"
        assert parsear_fecha_celda("nan") is None
        assert parsear_fecha_celda("no es fecha") is None


class TestLeerContratos:
    def test_leer_csv(self, csv_contratos):
        df = leer_contratos(csv_contratos)
        # La fila sin fecha_inicio se descarta
        assert len(df) == 3
        primera = df.iloc[0]
        assert primera["dni_nie"] == "11111111A"
        assert primera["fecha_inicio"] == "2025-01-01"
        assert primera["fecha_fin"] == "2025-05-25"
        assert primera["porcentaje_jornada"] == Decimal(100)
        assert pd.isna(df.iloc[1]["fecha_fin"])

    def test_leer_excel(self, tmp_path):
        path = tmp_path / "contratos.xlsx"
        pd.DataFrame([{
            "DNI_NIE": "11111111A",
            "fecha_inicio": "2025-01-01",
            "porcentaje_jornada": "100",
        }]).to_excel(path, index=False, engine="openpyxl")
        df = leer_contratos(path)
        assert len(df) == 1
        assert pd.isna(df.iloc[0]["nombre_empresa"])

    def test_archivo_inexistente(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            leer_contratos(tmp_path / "no_existe.xlsx")

    def test_faltan_columnas(self, tmp_path):
        path = tmp_path / "malo.csv"
        path.write_text("dni_nie;empresa\n11111111A;X\n", encoding="utf-8")
        with pytest.raises(ValueError, match="fecha_inicio"):
            leer_contratos(path)


class TestCargarContratos:
    def test_cargar(self, conn, csv_contratos):
        from src.liquidacion.models import insertar_alumno

        ana = insertar_alumno(conn, "Ana", "Prueba", dni_nie="11111111A")
        beto = insertar_alumno(conn, "Beto", "Prueba", dni_nie="22222222B")

        resumen = cargar_contratos(conn, leer_contratos(csv_contratos), usuario="test")
        assert resumen["insertados"] == 2
        assert resumen["sin_alumno"] == ["99999999Z"]
        assert resumen["errores"] == []

        filas = conn.execute(
            "SELECT alumno_id, fecha_fin, porcentaje_jornada FROM contratos ORDER BY alumno_id"
        ).fetchall()
        assert [tuple(f) for f in filas] == [(ana, "2025-05-25", "100"), (beto, None, "50")]

        accion = conn.execute("SELECT accion FROM log_auditoria").fetchone()[0]
        assert accion == "cargar_contratos"

    def test_fechas_incoherentes(self, conn):
        from src.liquidacion.models import insertar_alumno

        insertar_alumno(conn, "Ana", "Prueba", dni_nie="11111111A")
        df = pd.DataFrame([{
            "dni_nie": "11111111A", "cif_empresa": None, "nombre_empresa": "X",
            "fecha_inicio": "2025-05-01", "fecha_fin": "2025-04-01",
            "porcentaje_jornada": Decimal(100), "tipo_contrato": None,
            "horas_semanales": float("nan"),
        }])
        resumen = cargar_contratos(conn, df, usuario="test")
        assert resumen["insertados"] == 0
        assert len(resumen["errores"]) == 1
