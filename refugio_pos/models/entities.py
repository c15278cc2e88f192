# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio (insumos, kits, clientes,
# ventas, comandas, egresos y gastos diarios).
# Diseñadas para ser independientes del mecanismo de persistencia: el almacén
# de documentos guarda diccionarios, las entidades se convierten con
# to_dict() / from_dict().
# ==============================================================================

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Union
from enum import Enum


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class TipoProducto(str, Enum):
    """Origen de un producto vendible (colección que respalda la línea)."""
    INSUMO = "insumo"
    KIT = "kit"


class MetodoPago(str, Enum):
    """Métodos de pago aceptados en caja."""
    EFECTIVO = "efectivo"
    TARJETA = "tarjeta"
    TRANSFERENCIA = "transferencia"
    QR = "qr"
    MIXTO = "mixto"


class TipoEgreso(str, Enum):
    """Tipos de egreso."""
    PRODUCTO = "producto"   # Factura de compra con artículos
    SERVICIO = "servicio"   # Pago de un servicio


class AuditType(str, Enum):
    """Tipos de eventos de auditoría."""
    VENTA = "VENTA"
    STOCK = "STOCK"
    PRODUCTO = "PRODUCTO"
    CLIENTE = "CLIENTE"
    EGRESO = "EGRESO"
    SISTEMA = "SISTEMA"


# Unidades de medida válidas para insumos
UNIDADES_MEDIDA = ('KG', 'GR', 'LTS', 'UNIDAD', 'ML')

# Personas autorizadas a pagar gastos diarios
PAGADORES = (
    'Caja',
    'Adriana Gomez',
    'Diego Vargas',
    'Jassler Rocha',
    'Marco Gomez',
    'Ninoska Pardo',
)

# Mesas con las que arranca el punto de venta
MESAS_POR_DEFECTO = ('Mesa 1', 'Mesa 2', 'Mesa 3', 'Mesa 4')


# ==============================================================================
# NOMBRES DE COLECCIONES
# ==============================================================================

COL_CLIENTES = 'clientes'
COL_INSUMOS = 'insumos'
COL_KITS = 'kits'
COL_VENTAS = 'ventas'
COL_EGRESOS = 'egresos'
COL_GASTOS_DIARIOS = 'gastos_diarios'
COL_COMANDAS = 'comandosPendientes'
COL_AUDITORIA = 'auditoria'


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_optional_float(value: Any) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ==============================================================================
# ENTIDADES DE INVENTARIO
# ==============================================================================

@dataclass
class Insumo:
    """
    Insumo (artículo individual de inventario).

    Attributes:
        id: ID del documento
        nombre: Nombre en mayúsculas
        codigo: Código generado (prefijo + secuencia de 3 dígitos)
        categoria: Categoría en mayúsculas
        cantidad: Stock disponible
        stock_minimo: Umbral de stock bajo
        unidad_medida: KG, GR, LTS, UNIDAD o ML
        costo_compra: Costo total de compra
        ganancia: Margen como fracción (0.3 = 30%), None si no se vende
        precio_venta: Precio de venta, None si no se vende
        sin_precio_venta: True si el insumo no es vendible
        proveedor: Proveedor (opcional)
    """
    nombre: str
    categoria: str
    id: Optional[str] = None
    codigo: str = ''
    cantidad: float = 0
    stock_minimo: float = 0
    unidad_medida: str = 'UNIDAD'
    costo_compra: float = 0.0
    ganancia: Optional[float] = None
    precio_venta: Optional[float] = None
    sin_precio_venta: bool = False
    proveedor: str = ''
    user_id: str = ''
    creado_en: Optional[str] = None

    @property
    def stock_bajo(self) -> bool:
        """True si la cantidad llegó al stock mínimo."""
        return self.cantidad <= self.stock_minimo

    @property
    def es_vendible(self) -> bool:
        return not self.sin_precio_venta and (self.precio_venta or 0) > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia (sin el id)."""
        return {
            'nombre': self.nombre,
            'codigo': self.codigo,
            'categoria': self.categoria,
            'cantidad': self.cantidad,
            'stock_minimo': self.stock_minimo,
            'unidad_medida': self.unidad_medida,
            'costo_compra': self.costo_compra,
            'ganancia': self.ganancia,
            'precio_venta': self.precio_venta,
            'sin_precio_venta': self.sin_precio_venta,
            'proveedor': self.proveedor,
            'user_id': self.user_id,
            'creado_en': self.creado_en,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: str = None) -> 'Insumo':
        """Crea instancia desde diccionario."""
        return cls(
            id=doc_id or data.get('id'),
            nombre=data.get('nombre', ''),
            codigo=data.get('codigo', ''),
            categoria=data.get('categoria', ''),
            cantidad=_to_float(data.get('cantidad')),
            stock_minimo=_to_float(data.get('stock_minimo')),
            unidad_medida=data.get('unidad_medida', 'UNIDAD'),
            costo_compra=_to_float(data.get('costo_compra')),
            ganancia=_to_optional_float(data.get('ganancia')),
            precio_venta=_to_optional_float(data.get('precio_venta')),
            sin_precio_venta=bool(data.get('sin_precio_venta', False)),
            proveedor=data.get('proveedor', '') or '',
            user_id=data.get('user_id', ''),
            creado_en=data.get('creado_en'),
        )


@dataclass
class KitComponent:
    """Componente de un kit: insumo referenciado y cantidad requerida."""
    insumo_id: str
    cantidad: float
    nombre_insumo: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'insumo_id': self.insumo_id,
            'nombre_insumo': self.nombre_insumo,
            'cantidad': self.cantidad,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'KitComponent':
        return cls(
            insumo_id=data.get('insumo_id', ''),
            nombre_insumo=data.get('nombre_insumo', ''),
            cantidad=_to_float(data.get('cantidad')),
        )


@dataclass
class Kit:
    """
    Producto compuesto por varios insumos.

    max_kits_posibles e insumo_limitante se calculan al crear el kit y
    quedan como foto de ese momento: no se actualizan cuando cambia el
    stock de los insumos.
    """
    nombre: str
    componentes: List[KitComponent] = field(default_factory=list)
    id: Optional[str] = None
    costo_compra: float = 0.0
    precio_venta: float = 0.0
    ganancia: float = 0.0
    ganancia_porcentaje: float = 0.0
    cantidad: float = 0
    max_kits_posibles: int = 0
    insumo_limitante: str = ''
    user_id: str = ''
    creado_en: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nombre': self.nombre,
            'componentes': [c.to_dict() for c in self.componentes],
            'costo_compra': self.costo_compra,
            'precio_venta': self.precio_venta,
            'ganancia': self.ganancia,
            'ganancia_porcentaje': self.ganancia_porcentaje,
            'cantidad': self.cantidad,
            'max_kits_posibles': self.max_kits_posibles,
            'insumo_limitante': self.insumo_limitante,
            'user_id': self.user_id,
            'creado_en': self.creado_en,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: str = None) -> 'Kit':
        return cls(
            id=doc_id or data.get('id'),
            nombre=data.get('nombre', ''),
            componentes=[KitComponent.from_dict(c) for c in data.get('componentes', [])],
            costo_compra=_to_float(data.get('costo_compra')),
            precio_venta=_to_float(data.get('precio_venta')),
            ganancia=_to_float(data.get('ganancia')),
            ganancia_porcentaje=_to_float(data.get('ganancia_porcentaje')),
            cantidad=_to_float(data.get('cantidad')),
            max_kits_posibles=int(data.get('max_kits_posibles', 0) or 0),
            insumo_limitante=data.get('insumo_limitante', ''),
            user_id=data.get('user_id', ''),
            creado_en=data.get('creado_en'),
        )


# ==============================================================================
# CATÁLOGO DEL PUNTO DE VENTA (unión etiquetada insumo | kit)
# ==============================================================================

@dataclass
class CatalogItem:
    """Capacidades comunes de todo producto vendible."""
    id: str
    nombre: str
    precio_venta: float
    cantidad: float

    tipo = None  # type: TipoProducto

    @property
    def coleccion(self) -> str:
        return COL_INSUMOS if self.tipo == TipoProducto.INSUMO else COL_KITS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'nombre': self.nombre,
            'precio_venta': self.precio_venta,
            'cantidad': self.cantidad,
            'tipo': self.tipo.value,
        }


@dataclass
class InsumoCatalogItem(CatalogItem):
    """Insumo vendible individualmente."""
    codigo: str = ''
    tipo = TipoProducto.INSUMO

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['codigo'] = self.codigo
        return d


@dataclass
class KitCatalogItem(CatalogItem):
    """Kit vendible como una unidad."""
    componentes: List[KitComponent] = field(default_factory=list)
    tipo = TipoProducto.KIT

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['componentes'] = [c.to_dict() for c in self.componentes]
        return d


CatalogProduct = Union[InsumoCatalogItem, KitCatalogItem]


# ==============================================================================
# CLIENTES
# ==============================================================================

@dataclass
class Cliente:
    """
    Cliente registrado.

    Attributes:
        nombre_completo: Nombre en mayúsculas (solo letras y espacios)
        ci: Cédula de identidad (solo dígitos)
        telefono: Teléfono (solo dígitos)
        instagram: Usuario de Instagram (opcional)
        descuento: Porcentaje de descuento (0-100)
        codigo: Código aleatorio de 6 caracteres
    """
    nombre_completo: str
    ci: str
    telefono: str
    id: Optional[str] = None
    instagram: str = ''
    descuento: float = 0.0
    codigo: str = ''
    user_id: str = ''
    creado_en: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nombre_completo': self.nombre_completo,
            'ci': self.ci,
            'telefono': self.telefono,
            'instagram': self.instagram,
            'descuento': self.descuento,
            'codigo': self.codigo,
            'user_id': self.user_id,
            'creado_en': self.creado_en,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: str = None) -> 'Cliente':
        return cls(
            id=doc_id or data.get('id'),
            nombre_completo=data.get('nombre_completo', ''),
            ci=str(data.get('ci', '')),
            telefono=str(data.get('telefono', '')),
            instagram=data.get('instagram', '') or '',
            descuento=_to_float(data.get('descuento')),
            codigo=data.get('codigo', ''),
            user_id=data.get('user_id', ''),
            creado_en=data.get('creado_en'),
        )


# ==============================================================================
# PUNTO DE VENTA
# ==============================================================================

@dataclass
class CartLine:
    """
    Línea del carrito. El precio se captura al agregar el producto y no
    cambia aunque el producto cambie de precio después.
    """
    producto_id: str
    tipo: TipoProducto
    nombre: str
    precio_venta: float
    cantidad: int = 1

    @property
    def subtotal(self) -> float:
        return self.cantidad * self.precio_venta

    def to_dict(self) -> Dict[str, Any]:
        return {
            'producto_id': self.producto_id,
            'tipo': self.tipo.value if isinstance(self.tipo, Enum) else self.tipo,
            'nombre': self.nombre,
            'precio_venta': self.precio_venta,
            'cantidad': self.cantidad,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartLine':
        return cls(
            producto_id=data.get('producto_id', ''),
            tipo=TipoProducto(data.get('tipo', 'insumo')),
            nombre=data.get('nombre', ''),
            precio_venta=_to_float(data.get('precio_venta')),
            cantidad=int(data.get('cantidad', 1)),
        )


@dataclass
class PosSession:
    """
    Estado del punto de venta de un usuario.

    Estados:
        - sin mesa seleccionada (mesa_seleccionada is None)
        - mesa seleccionada con carrito vacío
        - mesa seleccionada con artículos
    """
    mesas: List[str] = field(default_factory=lambda: list(MESAS_POR_DEFECTO))
    siguiente_mesa: int = len(MESAS_POR_DEFECTO) + 1
    mesa_seleccionada: Optional[str] = None
    carrito: List[CartLine] = field(default_factory=list)
    cliente_id: Optional[str] = None
    descuento: float = 0.0

    def find_line(self, producto_id: str) -> Optional[CartLine]:
        for line in self.carrito:
            if line.producto_id == producto_id:
                return line
        return None

    def reset(self) -> None:
        """Limpia carrito, cliente y selección de mesa."""
        self.carrito = []
        self.cliente_id = None
        self.descuento = 0.0
        self.mesa_seleccionada = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mesas': list(self.mesas),
            'siguiente_mesa': self.siguiente_mesa,
            'mesa_seleccionada': self.mesa_seleccionada,
            'carrito': [line.to_dict() for line in self.carrito],
            'cliente_id': self.cliente_id,
            'descuento': self.descuento,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PosSession':
        if not data:
            return cls()
        return cls(
            mesas=list(data.get('mesas') or MESAS_POR_DEFECTO),
            siguiente_mesa=int(data.get('siguiente_mesa', len(MESAS_POR_DEFECTO) + 1)),
            mesa_seleccionada=data.get('mesa_seleccionada'),
            carrito=[CartLine.from_dict(line) for line in data.get('carrito', [])],
            cliente_id=data.get('cliente_id'),
            descuento=_to_float(data.get('descuento')),
        )


@dataclass
class Comanda:
    """Pedido pendiente de una mesa (carrito guardado al cambiar de mesa)."""
    mesa_id: str
    carrito: List[CartLine] = field(default_factory=list)
    cliente_id: Optional[str] = None
    user_id: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mesa_id': self.mesa_id,
            'carrito': [line.to_dict() for line in self.carrito],
            'cliente_id': self.cliente_id,
            'user_id': self.user_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Comanda':
        return cls(
            mesa_id=data.get('mesa_id', ''),
            carrito=[CartLine.from_dict(line) for line in data.get('carrito', [])],
            cliente_id=data.get('cliente_id'),
            user_id=data.get('user_id', ''),
        )


@dataclass
class Venta:
    """Venta registrada al cobrar una mesa."""
    mesa_id: str
    articulos: List[CartLine]
    subtotal: float
    descuento: float
    total: float
    metodo_pago: str
    pagos: Dict[str, float] = field(default_factory=dict)
    cambio: float = 0.0
    cliente_id: Optional[str] = None
    id: Optional[str] = None
    user_id: str = ''
    timestamp: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mesa_id': self.mesa_id,
            'cliente_id': self.cliente_id,
            'articulos': [line.to_dict() for line in self.articulos],
            'subtotal': self.subtotal,
            'descuento': self.descuento,
            'total': self.total,
            'metodo_pago': self.metodo_pago,
            'pagos': dict(self.pagos),
            'cambio': self.cambio,
            'user_id': self.user_id,
            'timestamp': self.timestamp,
        }


# ==============================================================================
# EGRESOS Y GASTOS
# ==============================================================================

@dataclass
class ArticuloEgreso:
    """Artículo de una factura de compra."""
    descripcion: str
    cantidad: float
    total: float

    def to_dict(self) -> Dict[str, Any]:
        return {'descripcion': self.descripcion, 'cantidad': self.cantidad, 'total': self.total}


@dataclass
class Egreso:
    """Egreso: factura de productos o pago de servicio."""
    tipo: TipoEgreso
    total: float
    quien_pago: str
    descripcion: str = ''
    numero_factura: str = ''
    nombre_servicio: str = ''
    articulos: List[ArticuloEgreso] = field(default_factory=list)
    id: Optional[str] = None
    user_id: str = ''
    timestamp: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tipo': self.tipo.value if isinstance(self.tipo, Enum) else self.tipo,
            'total': self.total,
            'quien_pago': self.quien_pago,
            'descripcion': self.descripcion,
            'numero_factura': self.numero_factura,
            'nombre_servicio': self.nombre_servicio,
            'articulos': [a.to_dict() for a in self.articulos],
            'user_id': self.user_id,
            'timestamp': self.timestamp,
        }


@dataclass
class ProductoGasto:
    nombre: str
    precio: float
    cantidad: float

    def to_dict(self) -> Dict[str, Any]:
        return {'nombre': self.nombre, 'precio': self.precio, 'cantidad': self.cantidad}


@dataclass
class GastoDiario:
    """Gasto diario de caja chica."""
    numero_factura: str
    productos: List[ProductoGasto]
    total: float
    pagado_por: str
    timestamp: Optional[str] = None
    created_at: Optional[Any] = None
    id: Optional[str] = None
    user_id: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'numero_factura': self.numero_factura,
            'productos': [p.to_dict() for p in self.productos],
            'total': self.total,
            'pagado_por': self.pagado_por,
            'timestamp': self.timestamp,
            'created_at': self.created_at,
            'user_id': self.user_id,
        }
