# ==============================================================================
# SERVICIO DE CLIENTES
# ==============================================================================
# Alta/edición/baja de clientes, búsqueda, total gastado por cliente y
# ranking de mejores consumidores.
# ==============================================================================

import random
import string
from typing import Any, Dict, List

from refugio_pos.models import Cliente
from refugio_pos.repositories import ClientRepository, SalesRepository
from refugio_pos.services.audit_service import AuditService
from refugio_pos.services.validation import (
    NO_ENCONTRADO,
    SOLO_DIGITOS,
    SOLO_LETRAS,
    clean_text,
    fail,
    parse_number,
)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6
TOP_CLIENTS = 10


def spending_by_client(ventas: List[Dict[str, Any]]) -> Dict[str, float]:
    """
    Suma el total de las ventas por cliente.
    Ignora ventas sin cliente o sin total.
    """
    totals: Dict[str, float] = {}
    for venta in ventas:
        cliente_id = venta.get('cliente_id')
        total = venta.get('total')
        if not cliente_id or total is None:
            continue
        totals[cliente_id] = round(totals.get(cliente_id, 0.0) + float(total), 2)
    return totals


def top_consumers(
    clientes: List[Dict[str, Any]],
    totals: Dict[str, float],
    limit: int = TOP_CLIENTS
) -> List[Dict[str, Any]]:
    """Clientes con gasto > 0 ordenados de mayor a menor (máximo `limit`)."""
    ranked = []
    for cliente in clientes:
        spent = totals.get(cliente.get('id'), 0.0)
        if spent > 0:
            ranked.append(dict(cliente, total_gastado=spent))
    ranked.sort(key=lambda c: c['total_gastado'], reverse=True)
    return ranked[:limit]


def filter_clients(clientes: List[Dict[str, Any]], query: str) -> List[Dict[str, Any]]:
    """Filtra por nombre (sin distinguir mayúsculas) o CI."""
    q = clean_text(query).lower()
    if not q:
        return list(clientes)
    return [
        c for c in clientes
        if q in str(c.get('nombre_completo', '')).lower() or q in str(c.get('ci', ''))
    ]


class ClientService:
    """
    Servicio para gestión de clientes.

    Responsabilidades:
    - Validación (nombre en letras, CI y teléfono numéricos, descuento 0-100)
    - Código aleatorio de 6 caracteres
    - CRUD
    - Total gastado por cliente y top 10
    """

    def __init__(
        self,
        client_repo: ClientRepository,
        sales_repo: SalesRepository,
        audit_service: AuditService = None
    ):
        self.client_repo = client_repo
        self.sales_repo = sales_repo
        self.audit_service = audit_service

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    @staticmethod
    def generate_client_code(existing: List[str] = None) -> str:
        """Código aleatorio de 6 caracteres A-Z0-9, distinto de los existentes."""
        existing = set(existing or [])
        while True:
            code = ''.join(random.choices(CODE_ALPHABET, k=CODE_LENGTH))
            if code not in existing:
                return code

    @staticmethod
    def _validate(data: Dict[str, Any]) -> Dict[str, Any]:
        nombre = clean_text(data.get('nombre_completo')).upper()
        ci = clean_text(data.get('ci'))
        telefono = clean_text(data.get('telefono'))

        if not nombre:
            return fail('El nombre completo es obligatorio.')
        if not SOLO_LETRAS.match(nombre):
            return fail('El nombre solo puede contener letras y espacios.')
        if not SOLO_DIGITOS.match(ci):
            return fail('El CI debe contener solo números.')
        if not SOLO_DIGITOS.match(telefono):
            return fail('El teléfono debe contener solo números.')

        descuento, error = parse_number(data.get('descuento'), 'descuento', required=False)
        if error:
            return fail(error)
        descuento = descuento or 0.0
        if descuento > 100:
            return fail('El descuento no puede ser mayor a 100.')

        return {
            'ok': True,
            'fields': {
                'nombre_completo': nombre,
                'ci': ci,
                'telefono': telefono,
                'instagram': clean_text(data.get('instagram')),
                'descuento': descuento,
            }
        }

    # =========================================================================
    # CRUD
    # =========================================================================

    def create_client(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea un cliente.

        Returns:
            Dict con resultado (ok, id, cliente) o error de validación
        """
        result = self._validate(data)
        if not result['ok']:
            return result

        cliente = Cliente(
            user_id=user_id,
            codigo=self.generate_client_code(self.client_repo.codes(user_id)),
            **result['fields']
        )
        cliente_id = self.client_repo.create(cliente.to_dict())

        if self.audit_service:
            self.audit_service.log_client_event(user_id, cliente_id, cliente.nombre_completo, 'creado')

        return {'ok': True, 'id': cliente_id, 'cliente': self.client_repo.get(cliente_id)}

    def update_client(self, user_id: str, cliente_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if self.client_repo.get(cliente_id, user_id) is None:
            return fail('Cliente no encontrado', NO_ENCONTRADO)
        result = self._validate(data)
        if not result['ok']:
            return result
        if not self.client_repo.update(cliente_id, result['fields']):
            return fail('Cliente no encontrado', NO_ENCONTRADO)
        if self.audit_service:
            self.audit_service.log_client_event(
                user_id, cliente_id, result['fields']['nombre_completo'], 'editado'
            )
        return {'ok': True, 'cliente': self.client_repo.get(cliente_id)}

    def delete_client(self, user_id: str, cliente_id: str) -> Dict[str, Any]:
        """Elimina un cliente. Sus ventas conservan el cliente_id."""
        current = self.client_repo.get(cliente_id, user_id)
        if current is None:
            return fail('Cliente no encontrado', NO_ENCONTRADO)
        if not self.client_repo.delete(cliente_id):
            return fail('Cliente no encontrado', NO_ENCONTRADO)
        if self.audit_service:
            self.audit_service.log_client_event(
                user_id, cliente_id, current.get('nombre_completo', ''), 'eliminado'
            )
        return {'ok': True, 'id': cliente_id}

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_clients(self, user_id: str, query: str = '') -> List[Dict[str, Any]]:
        """
        Lista clientes filtrados con su total gastado.
        """
        totals = spending_by_client(self.sales_repo.list_for_user(user_id))
        clients = filter_clients(self.client_repo.list_sorted(user_id), query)
        return [dict(c, total_gastado=totals.get(c['id'], 0.0)) for c in clients]

    def get_top_consumers(self, user_id: str, limit: int = TOP_CLIENTS) -> List[Dict[str, Any]]:
        totals = spending_by_client(self.sales_repo.list_for_user(user_id))
        return top_consumers(self.client_repo.list_sorted(user_id), totals, limit)
