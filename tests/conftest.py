"""Fixtures compartidos: BD de liquidaciones temporal por test."""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def db_path(tmp_path):
    """BD vacía con el esquema creado; settings apunta a ella durante el test."""
    path = tmp_path / "liquidaciones.db"
    with patch("config.settings.LIQUIDACION_DB_PATH", path), \
         patch("config.settings.REPORTS_PATH", tmp_path / "reportes"):
        from src.liquidacion.models import init_db
        init_db()
        yield path


@pytest.fixture
def conn(db_path):
    """Conexión abierta a la BD temporal."""
    from src.liquidacion.models import get_db
    with get_db() as c:
        yield c


@pytest.fixture
def crear_alumno(conn):
    """Factory: inserta un alumno con un contrato y retorna su id."""
    from src.liquidacion.models import insertar_alumno, insertar_contrato

    def _crear(nombre, inicio, fin, porcentaje=100, eligible_from_date=None, dni=None):
        alumno_id = insertar_alumno(
            conn, nombre, "Prueba", dni_nie=dni, eligible_from_date=eligible_from_date
        )
        insertar_contrato(conn, {
            "alumno_id": alumno_id,
            "nombre_empresa": "Empresa Test",
            "fecha_inicio": inicio,
            "fecha_fin": fin,
            "porcentaje_jornada": porcentaje,
        })
        return alumno_id

    return _crear
