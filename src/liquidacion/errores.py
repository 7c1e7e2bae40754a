"""Errores del motor de liquidación.

Cada error lleva el mensaje que se muestra al usuario y el código HTTP con el
que la API lo devuelve como ``{"error": mensaje}``.
"""


class LiquidacionError(Exception):
    """Base de todos los errores de liquidación."""

    status_code = 500

    def __init__(self, mensaje: str):
        super().__init__(mensaje)
        self.mensaje = mensaje


class ParametrosInvalidos(LiquidacionError):
    """Fechas mal formadas, objetivo o modo desconocido, rango invertido."""

    status_code = 400


class RangoSuperpuesto(ParametrosInvalidos):
    """El rango pedido se superpone con una liquidación ya registrada."""


class DatosNoDisponibles(LiquidacionError):
    """No se pudieron leer los contratos o el histórico de liquidaciones."""

    status_code = 503


class NadaQueLiquidar(LiquidacionError):
    """Ningún alumno (ni la bolsa combinada) alcanza una jornada completa."""

    status_code = 422


class LiquidacionEnCurso(LiquidacionError):
    """Otra liquidación se está registrando en este momento."""

    status_code = 409


class ErrorPersistencia(LiquidacionError):
    """Falló la transacción de registro; no quedó nada escrito."""

    status_code = 500
