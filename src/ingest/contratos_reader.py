"""Lee contratos (inserciones laborales) desde Excel o CSV y los carga en la BD.

El archivo tiene un formato fijo, una fila por contrato:

    dni_nie | cif_empresa | nombre_empresa | fecha_inicio | fecha_fin |
    porcentaje_jornada | tipo_contrato | horas_semanales

Los contratos son la fuente de los días FTE que acumula cada alumno.
"""

import logging
import re
import sqlite3
from decimal import Decimal, InvalidOperation
from pathlib import Path

import pandas as pd

from config import settings
from src.liquidacion.models import (
    buscar_alumno_por_dni,
    insertar_contrato,
    registrar_auditoria,
)

logger = logging.getLogger(__name__)

COLUMNAS = [
    "dni_nie",
    "cif_empresa",
    "nombre_empresa",
    "fecha_inicio",
    "fecha_fin",
    "porcentaje_jornada",
    "tipo_contrato",
    "horas_semanales",
]
REQUERIDAS = ["dni_nie", "fecha_inicio", "porcentaje_jornada"]

_RE_FECHA_DMY = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")


def parsear_porcentaje(valor) -> Decimal | None:
    """Normaliza el porcentaje de jornada a 0-100.

    ``"50%"``, ``"50"``, ``50`` y ``0.5`` → ``Decimal("50")``.
    Retorna None si no es un número válido o queda fuera de (0, 100].
    """
    if valor is None or (isinstance(valor, float) and pd.isna(valor)):
        return None
    texto = str(valor).strip().replace("%", "").replace(",", ".")
    if not texto:
        return None
    try:
        pct = Decimal(texto)
    except InvalidOperation:
        return None
    # Fracción (0.5) en vez de porcentaje (50)
    if Decimal(0) < pct <= Decimal(1) and "%" not in str(valor):
        pct = pct * 100
    if not (Decimal(0) < pct <= Decimal(100)):
        return None
    return pct


def parsear_fecha_celda(valor) -> str | None:
    """Fecha de una celda a "YYYY-MM-DD".

    Acepta fechas de Excel (Timestamp), ISO y ``dd/mm/aaaa`` o ``dd-mm-aaaa``.
    """
    if valor is None:
        return None
    if isinstance(valor, pd.Timestamp):
        return None if pd.isna(valor) else valor.date().isoformat()
    texto = str(valor).strip()
    if texto.lower() in ("", "nan", "nat", "none"):
        return None
    m = _RE_FECHA_DMY.match(texto)
    if m:
        texto = f"{m.group(3)}-{int(m.group(2)):02d}-{int(m.group(1)):02d}"
    try:
        return pd.Timestamp(texto[:10]).date().isoformat()
    except (ValueError, TypeError):
        return None


def leer_contratos(path=None):
    """Lee el archivo de contratos (.xlsx o .csv).

    Parameters
    ----------
    path : Path | str | None
        Ruta al archivo.  Si es ``None`` usa ``settings.CONTRATOS_PATH``.

    Returns
    -------
    pd.DataFrame
        Con las columnas de ``COLUMNAS``; fechas como "YYYY-MM-DD" y
        porcentaje_jornada como Decimal. Las filas sin dni_nie, fecha_inicio
        o porcentaje válido se descartan.
    """
    if path is None:
        path = settings.CONTRATOS_PATH
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Archivo de contratos no encontrado: {path}")

    logger.info("Leyendo contratos desde %s", path)
    if path.suffix.lower() == ".csv":
        df = pd.read_csv(path, dtype=str, sep=None, engine="python", encoding="utf-8-sig")
    else:
        df = pd.read_excel(path, dtype=str, engine="openpyxl")
    logger.info("Contratos: %d filas leídas", len(df))

    df.columns = [str(c).strip().lower() for c in df.columns]
    faltantes = [c for c in REQUERIDAS if c not in df.columns]
    if faltantes:
        raise ValueError(f"Faltan columnas obligatorias en {path.name}: {', '.join(faltantes)}")
    for col in COLUMNAS:
        if col not in df.columns:
            df[col] = None
    df = df[COLUMNAS].copy()

    df["dni_nie"] = df["dni_nie"].fillna("").astype(str).str.strip().str.upper()
    df["fecha_inicio"] = df["fecha_inicio"].map(parsear_fecha_celda)
    df["fecha_fin"] = df["fecha_fin"].map(parsear_fecha_celda)
    df["porcentaje_jornada"] = df["porcentaje_jornada"].map(parsear_porcentaje)
    df["horas_semanales"] = pd.to_numeric(df["horas_semanales"], errors="coerce")

    invalidas = (
        (df["dni_nie"] == "")
        | df["fecha_inicio"].isna()
        | df["porcentaje_jornada"].isna()
    )
    if invalidas.any():
        logger.warning(
            "Contratos: %d filas descartadas por datos incompletos o inválidos",
            int(invalidas.sum()),
        )
    df = df[~invalidas].reset_index(drop=True)

    logger.info("Contratos válidos: %d", len(df))
    return df


def cargar_contratos(conn: sqlite3.Connection, df, usuario: str, ip: str = "") -> dict:
    """Inserta los contratos del DataFrame para alumnos existentes.

    Los alumnos se buscan por dni_nie; filas de alumnos desconocidos o con
    fechas incoherentes se omiten y se informan.

    Returns
    -------
    dict
        ``{"insertados": int, "sin_alumno": list[str], "errores": list[str]}``
    """
    insertados = 0
    sin_alumno: list[str] = []
    errores: list[str] = []

    for fila in df.itertuples(index=False):
        alumno = buscar_alumno_por_dni(conn, fila.dni_nie)
        if alumno is None:
            sin_alumno.append(fila.dni_nie)
            continue
        try:
            insertar_contrato(conn, {
                "alumno_id":          alumno["id"],
                "cif_empresa":        _texto(fila.cif_empresa),
                "nombre_empresa":     _texto(fila.nombre_empresa) or "",
                "fecha_inicio":       fila.fecha_inicio,
                "fecha_fin":          _texto(fila.fecha_fin),
                "porcentaje_jornada": fila.porcentaje_jornada,
                "tipo_contrato":      _texto(fila.tipo_contrato),
                "horas_semanales":    None if pd.isna(fila.horas_semanales) else float(fila.horas_semanales),
            })
            insertados += 1
        except ValueError as exc:
            errores.append(f"{fila.dni_nie}: {exc}")

    registrar_auditoria(
        conn, usuario, "cargar_contratos",
        f"{insertados} contratos cargados; {len(sin_alumno)} sin alumno; {len(errores)} con errores",
        ip,
    )
    if sin_alumno:
        logger.warning("Contratos de alumnos no registrados: %s", ", ".join(sorted(set(sin_alumno))))
    logger.info("Contratos cargados: %d", insertados)
    return {"insertados": insertados, "sin_alumno": sin_alumno, "errores": errores}


def _texto(valor) -> str | None:
    if valor is None or (isinstance(valor, float) and pd.isna(valor)):
        return None
    texto = str(valor).strip()
    return texto or None
