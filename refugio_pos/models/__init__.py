# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Entidades del dominio como dataclasses con to_dict() / from_dict().
# Independientes del almacén de documentos que las persiste.
# ==============================================================================

from .entities import (
    # Enumeraciones
    TipoProducto,
    MetodoPago,
    TipoEgreso,
    AuditType,

    # Constantes
    UNIDADES_MEDIDA,
    PAGADORES,
    MESAS_POR_DEFECTO,
    COL_CLIENTES,
    COL_INSUMOS,
    COL_KITS,
    COL_VENTAS,
    COL_EGRESOS,
    COL_GASTOS_DIARIOS,
    COL_COMANDAS,
    COL_AUDITORIA,

    # Inventario
    Insumo,
    Kit,
    KitComponent,

    # Catálogo
    CatalogItem,
    CatalogProduct,
    InsumoCatalogItem,
    KitCatalogItem,

    # Clientes
    Cliente,

    # Punto de venta
    CartLine,
    PosSession,
    Comanda,
    Venta,

    # Egresos
    ArticuloEgreso,
    Egreso,
    ProductoGasto,
    GastoDiario,
)

__all__ = [
    'TipoProducto',
    'MetodoPago',
    'TipoEgreso',
    'AuditType',

    'UNIDADES_MEDIDA',
    'PAGADORES',
    'MESAS_POR_DEFECTO',
    'COL_CLIENTES',
    'COL_INSUMOS',
    'COL_KITS',
    'COL_VENTAS',
    'COL_EGRESOS',
    'COL_GASTOS_DIARIOS',
    'COL_COMANDAS',
    'COL_AUDITORIA',

    'Insumo',
    'Kit',
    'KitComponent',

    'CatalogItem',
    'CatalogProduct',
    'InsumoCatalogItem',
    'KitCatalogItem',

    'Cliente',

    'CartLine',
    'PosSession',
    'Comanda',
    'Venta',

    'ArticuloEgreso',
    'Egreso',
    'ProductoGasto',
    'GastoDiario',
]
