# ==============================================================================
# SERVICIO DE PAGOS
# ==============================================================================
# Valida el pago de una mesa antes de ejecutar el cobro.
#   - efectivo: recibido >= total, cambio = recibido - total
#   - tarjeta / transferencia / qr: monto exacto, sin cambio
#   - mixto: la suma de los montos debe igualar el total (tolerancia 1e-6)
# ==============================================================================

from typing import Any, Dict, Optional

from refugio_pos.models import MetodoPago
from refugio_pos.services.validation import fail, parse_number

# Tolerancia para comparar montos
PAYMENT_TOLERANCE = 1e-6

# Métodos que se pueden combinar en un pago mixto
SPLIT_METHODS = (
    MetodoPago.EFECTIVO.value,
    MetodoPago.TARJETA.value,
    MetodoPago.TRANSFERENCIA.value,
    MetodoPago.QR.value,
)


class PaymentService:
    """
    Servicio de validación de pagos.

    No toca el almacén: el resultado se usa para decidir si se ejecuta
    la operación atómica de cobro y se guarda dentro de la venta.
    """

    def validate_payment(
        self,
        total: float,
        metodo: str,
        pagos: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Valida un pago.

        Args:
            total: Total a cobrar
            metodo: efectivo, tarjeta, transferencia, qr o mixto
            pagos: Montos por método. Para métodos simples puede traer solo
                el monto de ese método; si falta, se asume el total exacto.

        Returns:
            {'ok': True, 'metodo', 'pagos', 'cambio'} o error de validación
        """
        metodo = str(metodo or '').strip().lower()
        try:
            metodo = MetodoPago(metodo).value
        except ValueError:
            return fail('Método de pago inválido.')

        pagos = pagos or {}
        total = round(float(total), 2)

        if metodo == MetodoPago.MIXTO.value:
            return self._validate_split(total, pagos)

        raw = pagos.get(metodo)
        if raw is None or raw == '':
            amount = total
        else:
            amount, error = parse_number(raw, f'monto en {metodo}')
            if error:
                return fail(error)

        if metodo == MetodoPago.EFECTIVO.value:
            if amount + PAYMENT_TOLERANCE < total:
                return fail(f'El monto recibido ({amount:.2f}) es menor al total ({total:.2f}).')
            return {
                'ok': True,
                'metodo': metodo,
                'pagos': {metodo: round(amount, 2)},
                'cambio': round(amount - total, 2),
            }

        if abs(amount - total) > PAYMENT_TOLERANCE:
            return fail(f'El pago con {metodo} debe ser exactamente {total:.2f}.')
        return {'ok': True, 'metodo': metodo, 'pagos': {metodo: total}, 'cambio': 0.0}

    def _validate_split(self, total: float, pagos: Dict[str, Any]) -> Dict[str, Any]:
        declared = {}
        for method, raw in pagos.items():
            if method not in SPLIT_METHODS:
                return fail(f'Método inválido en pago mixto: {method}')
            amount, error = parse_number(raw, f'monto en {method}', required=False)
            if error:
                return fail(error)
            if amount:
                declared[method] = amount

        if not declared:
            return fail('Ingrese al menos un monto para el pago mixto.')

        # Se compara lo declarado; el redondeo es solo para guardar
        paid = sum(declared.values())
        if abs(paid - total) > PAYMENT_TOLERANCE:
            return fail(f'La suma de los pagos ({paid:.2f}) no coincide con el total ({total:.2f}).')
        cleaned = {method: round(amount, 2) for method, amount in declared.items()}
        return {'ok': True, 'metodo': MetodoPago.MIXTO.value, 'pagos': cleaned, 'cambio': 0.0}
