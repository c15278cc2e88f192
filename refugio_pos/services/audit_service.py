# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza el registro de auditoría.
# Formatea mensajes humanizados y categoriza eventos.
# ==============================================================================

from typing import Any, Dict, List

from refugio_pos.models import AuditType
from refugio_pos.repositories.interfaces import IAuditRepository


class AuditService:
    """
    Servicio para registro y consulta de auditoría.

    Centraliza:
    - Registro de eventos con mensajes humanizados
    - Categorización (VENTA, STOCK, PRODUCTO, CLIENTE, EGRESO, SISTEMA)
    - Búsqueda de logs

    Regla: toda mutación confirmada por el almacén deja un log.
    """

    TYPE_VENTA = AuditType.VENTA.value
    TYPE_STOCK = AuditType.STOCK.value
    TYPE_PRODUCTO = AuditType.PRODUCTO.value
    TYPE_CLIENTE = AuditType.CLIENTE.value
    TYPE_EGRESO = AuditType.EGRESO.value
    TYPE_SISTEMA = AuditType.SISTEMA.value

    def __init__(self, audit_repo: IAuditRepository):
        """
        Args:
            audit_repo: Repositorio de auditoría
        """
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un evento de auditoría genérico.

        Args:
            log_type: Tipo de evento
            user: Usuario que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado
            details: Detalles adicionales
        """
        self.audit_repo.log(log_type, user, message, related_id, details)

    def log_stock_add(
        self,
        user: str,
        item_id: str,
        nombre: str,
        quantity: float,
        old_stock: float,
        new_stock: float,
        tipo: str = 'insumo'
    ) -> None:
        """Registra un ingreso de stock de un insumo o kit."""
        message = f"Ingreso de stock: +{quantity:g} {nombre} ({tipo}) - Stock: {old_stock:g} → {new_stock:g}"
        self.log(
            self.TYPE_STOCK,
            user,
            message,
            item_id,
            {'quantity': quantity, 'from': old_stock, 'to': new_stock, 'tipo': tipo}
        )

    def log_insumo_created(self, user: str, insumo_id: str, nombre: str, codigo: str) -> None:
        message = f"Insumo creado: {nombre} ({codigo})"
        self.log(self.TYPE_PRODUCTO, user, message, insumo_id, {'codigo': codigo})

    def log_insumo_updated(self, user: str, insumo_id: str, nombre: str, changes: Dict[str, Any]) -> None:
        """
        Registra la edición de un insumo.

        Args:
            changes: Campos modificados {campo: {'from': x, 'to': y}}
        """
        if changes:
            detail = ', '.join(f"{k}: {v['from']} → {v['to']}" for k, v in changes.items())
            message = f"Insumo editado: {nombre} - {detail}"
        else:
            message = f"Insumo editado: {nombre} (sin cambios)"
        self.log(self.TYPE_PRODUCTO, user, message, insumo_id, {'changes': changes})

    def log_kit_created(
        self,
        user: str,
        kit_id: str,
        nombre: str,
        costo: float,
        precio: float,
        max_kits: int
    ) -> None:
        message = f"Kit creado: {nombre} - Costo: {costo:.2f} - Precio: {precio:.2f} - Armables: {max_kits}"
        self.log(
            self.TYPE_PRODUCTO,
            user,
            message,
            kit_id,
            {'costo_compra': costo, 'precio_venta': precio, 'max_kits_posibles': max_kits}
        )

    def log_product_deleted(self, user: str, doc_id: str, nombre: str, tipo: str) -> None:
        message = f"{tipo.capitalize()} eliminado: {nombre}"
        self.log(self.TYPE_PRODUCTO, user, message, doc_id, {'tipo': tipo})

    def log_sale_created(
        self,
        user: str,
        venta_id: str,
        mesa_id: str,
        total: float,
        metodo_pago: str,
        items_count: int
    ) -> None:
        """Registra una venta cobrada."""
        message = f"Venta registrada en {mesa_id} - Total: {total:.2f} ({metodo_pago}) - {items_count} artículos"
        self.log(
            self.TYPE_VENTA,
            user,
            message,
            venta_id,
            {'total': total, 'metodo_pago': metodo_pago, 'items_count': items_count}
        )

    def log_checkout_aborted(self, user: str, mesa_id: str, reason: str) -> None:
        message = f"Cobro rechazado en {mesa_id}: {reason}"
        self.log(self.TYPE_VENTA, user, message, mesa_id, {'reason': reason})

    def log_client_event(self, user: str, cliente_id: str, nombre: str, action: str) -> None:
        """
        Args:
            action: 'creado', 'editado' o 'eliminado'
        """
        message = f"Cliente {action}: {nombre}"
        self.log(self.TYPE_CLIENTE, user, message, cliente_id, {'action': action})

    def log_expense_event(
        self,
        user: str,
        doc_id: str,
        descripcion: str,
        total: float,
        action: str,
        kind: str = 'egreso'
    ) -> None:
        message = f"{kind.capitalize()} {action}: {descripcion} - Total: {total:.2f}"
        self.log(self.TYPE_EGRESO, user, message, doc_id, {'total': total, 'action': action, 'kind': kind})

    def log_session_started(self, user: str) -> None:
        self.log(self.TYPE_SISTEMA, user, "Nueva sesión anónima iniciada", user)

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_logs(self, user: str) -> List[Dict[str, Any]]:
        return self.audit_repo.load(user)

    def search_logs(self, user: str, query: str = '', log_type: str = None) -> List[Dict[str, Any]]:
        return self.audit_repo.search_logs(user, query, log_type)
