# ==============================================================================
# UTILIDADES DE VALIDACIÓN Y RESULTADOS
# ==============================================================================
# Los servicios retornan diccionarios de resultado:
#   {'ok': True, ...datos}
#   {'ok': False, 'error': 'mensaje', 'error_type': 'validacion'}
# Las rutas traducen error_type a código HTTP.
# ==============================================================================

import re
from datetime import date, datetime, time
from typing import Any, Dict, Optional, Tuple

# Tipos de error
VALIDACION = 'validacion'
NO_ENCONTRADO = 'no_encontrado'
STOCK_INSUFICIENTE = 'stock_insuficiente'
ALMACEN = 'almacen'

SOLO_LETRAS = re.compile(r'^[A-ZÁÉÍÓÚÑÜ\s]+$')
SOLO_DIGITOS = re.compile(r'^\d+$')


def fail(error: str, error_type: str = VALIDACION, **extra) -> Dict[str, Any]:
    """Construye un resultado de error."""
    result = {'ok': False, 'error': error, 'error_type': error_type}
    result.update(extra)
    return result


def to_int(v, default=None):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def parse_number(
    value: Any,
    label: str,
    required: bool = True,
    minimum: float = 0.0,
    strictly_positive: bool = False,
) -> Tuple[Optional[float], Optional[str]]:
    """
    Convierte un valor de formulario a float.

    Args:
        value: Valor recibido (str, int, float o None)
        label: Nombre del campo para el mensaje de error
        required: Si el campo es obligatorio
        minimum: Valor mínimo aceptado
        strictly_positive: Exigir valor > 0

    Returns:
        Tupla (numero, error). Si hay error, numero es None.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            return None, f"El campo {label} es obligatorio."
        return None, None
    if isinstance(value, bool):
        return None, f"El campo {label} debe ser numérico."
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None, f"El campo {label} debe ser numérico."
    if number != number or number in (float('inf'), float('-inf')):
        return None, f"El campo {label} debe ser numérico."
    if strictly_positive and number <= 0:
        return None, f"El campo {label} debe ser mayor a 0."
    if number < minimum:
        return None, f"El campo {label} no puede ser negativo."
    return number, None


def clean_text(value: Any) -> str:
    return str(value or '').strip()


def parse_date(value: Any) -> Optional[date]:
    """Parsea 'YYYY-MM-DD' (o un ISO completo) a date. None si es inválido."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = clean_text(value)
    if not text:
        return None
    try:
        return datetime.fromisoformat(text[:10]).date()
    except ValueError:
        return None


def start_of_day(d: date) -> datetime:
    """Inicio del día en hora local."""
    return datetime.combine(d, time.min).astimezone()


def end_of_day(d: date) -> datetime:
    """Fin del día en hora local (inclusivo)."""
    return datetime.combine(d, time.max).astimezone()
