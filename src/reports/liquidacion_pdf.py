"""Genera el PDF de una liquidación registrada usando fpdf2."""

import logging
from datetime import datetime
from pathlib import Path

from fpdf import FPDF

from config import settings

logger = logging.getLogger(__name__)

# ── Colores corporativos ──────────────────────────────────
AZUL_OSCURO = (31, 78, 121)       # #1F4E79
AZUL_CLARO = (213, 232, 240)      # #D5E8F0
GRIS_CLARO = (240, 240, 240)
BLANCO = (255, 255, 255)
NEGRO = (0, 0, 0)

ETIQUETAS_OBJETIVO = {"six_months": "6 meses", "one_year": "1 año"}
ETIQUETAS_MODO = {"individual": "Individual", "pooled": "Combinada"}

# (título, clave, ancho mm, alineación)
_COLUMNAS = [
    ("Alumno", None, 58, "L"),
    ("Apertura", "opening_fte_days", 22, "R"),
    ("Añadidos", "added_fte_days", 22, "R"),
    ("Usados", "used_fte_days", 22, "R"),
    ("Cierre", "closing_fte_days", 22, "R"),
    ("Jornadas", "jornadas_generated", 20, "R"),
]


def fecha_es(iso: str | None) -> str:
    """'2025-06-30' → '30/06/2025'."""
    if not iso:
        return "-"
    iso = str(iso)[:10]
    try:
        return datetime.strptime(iso, "%Y-%m-%d").strftime("%d/%m/%Y")
    except ValueError:
        return iso


def _num(valor) -> str:
    if isinstance(valor, int):
        return str(valor)
    return f"{valor:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def generar_pdf_liquidacion(detalle, output_dir=None):
    """Genera el PDF de una liquidación.

    Parameters
    ----------
    detalle : dict
        ``{"liquidation": {...}, "lines": [...]}`` como lo entrega
        ``motor.obtener_liquidacion``.
    output_dir : Path | None
        Carpeta destino.  Si es ``None`` usa ``settings.REPORTS_PATH``.

    Returns
    -------
    Path
        Ruta del PDF generado.
    """
    if output_dir is None:
        output_dir = settings.REPORTS_PATH
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    liq = detalle["liquidation"]
    destino = output_dir / f"liquidacion_{liq['id']}_{liq['end_date']}.pdf"

    pdf = LiquidacionPDF(detalle)
    pdf.generar()
    pdf.output(str(destino))

    logger.info("PDF generado: %s (%d bytes)", destino.name, destino.stat().st_size)
    return destino


# ══════════════════════════════════════════════════════════
#  Clase LiquidacionPDF: construye el PDF con fpdf2
# ══════════════════════════════════════════════════════════

class LiquidacionPDF(FPDF):
    """PDF con cabecera, totales y líneas por alumno de una liquidación."""

    def __init__(self, detalle):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.liq = detalle["liquidation"]
        self.lineas = detalle["lines"]
        self.set_auto_page_break(auto=True, margin=25)
        self.set_margins(20, 20, 20)

    def header(self):
        self.set_fill_color(*AZUL_OSCURO)
        self.rect(0, 0, self.w, 8, "F")

        self.set_y(12)
        self.set_font("Helvetica", "B", 18)
        self.set_text_color(*AZUL_OSCURO)
        self.cell(0, 10, f"Liquidación N° {self.liq['id']}", align="C", new_x="LMARGIN", new_y="NEXT")

        self.set_font("Helvetica", "", 11)
        self.set_text_color(100, 100, 100)
        self.cell(
            0, 6,
            f"Período {fecha_es(self.liq['start_date'])} al {fecha_es(self.liq['end_date'])}",
            align="C", new_x="LMARGIN", new_y="NEXT",
        )

        self.set_y(self.get_y() + 3)
        self.set_draw_color(*AZUL_OSCURO)
        self.set_line_width(0.5)
        self.line(20, self.get_y(), self.w - 20, self.get_y())
        self.set_y(self.get_y() + 5)

    def footer(self):
        self.set_y(-20)
        self.set_font("Helvetica", "", 8)
        self.set_text_color(100, 100, 100)
        self.cell(0, 4, f"Registrada el {fecha_es(self.liq['created_at'])} por {self.liq.get('created_by', '')}", align="L")
        self.set_x(20)
        self.cell(0, 4, f"Página {self.page_no()}/{{nb}}", align="R")

    def generar(self):
        """Genera todas las páginas del reporte."""
        self.alias_nb_pages()
        self.add_page()
        self._cuadro_resumen()
        self.ln(4)
        self._tabla_lineas()

    def _cuadro_resumen(self):
        liq = self.liq
        y0 = self.get_y()
        self.set_fill_color(*AZUL_CLARO)
        self.rect(20, y0, self.w - 40, 24, "F")

        self.set_xy(25, y0 + 3)
        self.set_font("Helvetica", "B", 11)
        self.set_text_color(*AZUL_OSCURO)
        self.cell(
            0, 6,
            f"Objetivo: {ETIQUETAS_OBJETIVO.get(liq['target'], liq['target'])} "
            f"({liq['target_fte_days']} días por jornada)  |  "
            f"Modo: {ETIQUETAS_MODO.get(liq['mode'], liq['mode'])}",
            new_x="LMARGIN", new_y="NEXT",
        )

        self.set_x(25)
        self.set_font("Helvetica", "", 10)
        self.set_text_color(*NEGRO)
        self.cell(55, 6, f"Jornadas: {liq['total_jornadas']}")
        self.cell(55, 6, f"Alumnos: {liq['total_students']}")
        self.cell(0, 6, f"Días usados: {_num(liq['total_fte_days_used'])}", new_x="LMARGIN", new_y="NEXT")

        self.set_y(y0 + 28)

    def _tabla_lineas(self):
        self.set_font("Helvetica", "B", 9)
        self.set_fill_color(*AZUL_OSCURO)
        self.set_text_color(*BLANCO)
        for titulo, _, ancho, _ in _COLUMNAS:
            self.cell(ancho, 7, titulo, border=1, align="C", fill=True)
        self.ln()

        self.set_font("Helvetica", "", 9)
        self.set_text_color(*NEGRO)
        for i, linea in enumerate(self.lineas):
            relleno = i % 2 == 1
            self.set_fill_color(*GRIS_CLARO)
            nombre = f"{linea['last_names']}, {linea['first_names']}".strip(", ")
            for _, clave, ancho, alineacion in _COLUMNAS:
                texto = nombre[:34] if clave is None else _num(linea[clave])
                self.cell(ancho, 6, texto, border=1, align=alineacion, fill=relleno)
            self.ln()

        if not self.lineas:
            self.cell(0, 6, "Sin líneas registradas", align="C", new_x="LMARGIN", new_y="NEXT")
