# ==============================================================================
# SISTEMA DE PROFILING INTERNO
# ==============================================================================
# Mide rendimiento de rutas y funciones sin afectar la experiencia del usuario.
# Guarda logs legibles en logs/ para análisis humano.
#
# ACTIVAR/DESACTIVAR: variable de entorno REFUGIO_PROFILING (1 por defecto)
# DIRECTORIO: variable de entorno REFUGIO_LOGS_DIR
# ==============================================================================

import os
import threading
import time
from collections import defaultdict
from datetime import datetime
from functools import wraps

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = os.environ.get('REFUGIO_PROFILING', '1').lower() not in ('0', 'false', 'no')

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300   # Advertencia si supera 300ms
THRESHOLD_CRITICAL = 700  # Crítico si supera 700ms

LOGS_DIR = os.environ.get('REFUGIO_LOGS_DIR') or os.path.join(os.path.dirname(__file__), 'logs')

PERFORMANCE_LOG = os.path.join(LOGS_DIR, 'performance.log')
SLOW_ROUTES_LOG = os.path.join(LOGS_DIR, 'slow_routes.log')
SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')

# Mapeo de rutas a nombres legibles (para logs más humanos)
ROUTE_NAMES = {
    # Sesión
    'GET /api/session': 'Iniciar sesión anónima',

    # Insumos
    'GET /api/insumos': 'Ver insumos',
    'POST /api/insumos': 'Crear insumo',
    'PUT /api/insumos/<insumo_id>': 'Editar insumo',
    'DELETE /api/insumos/<insumo_id>': 'Eliminar insumo',
    'POST /api/insumos/<insumo_id>/stock': 'Agregar stock de insumo',
    'GET /api/insumos/stock-bajo': 'Ver stock bajo',

    # Kits
    'GET /api/kits': 'Ver kits',
    'POST /api/kits': 'Crear kit',
    'POST /api/kits/<kit_id>/stock': 'Agregar stock de kit',
    'DELETE /api/kits/<kit_id>': 'Eliminar kit',

    # Reportes de inventario
    'GET /api/inventario/ventas-esperadas': 'Ver ventas esperadas',
    'GET /api/inventario/mas-vendidos': 'Ver productos más vendidos',
    'GET /api/inventario/stream': 'Inventario en vivo',

    # Punto de venta
    'GET /api/pos': 'Ver punto de venta',
    'GET /api/pos/catalogo': 'Ver catálogo',
    'GET /api/pos/clientes': 'Buscar cliente en caja',
    'POST /api/pos/mesas': 'Agregar mesa',
    'POST /api/pos/mesas/<mesa_id>/seleccionar': 'Seleccionar mesa',
    'POST /api/pos/cliente': 'Asignar cliente a la mesa',
    'DELETE /api/pos/cliente': 'Quitar cliente de la mesa',
    'POST /api/pos/carrito': 'Agregar al carrito',
    'POST /api/pos/carrito/<producto_id>/incrementar': 'Sumar unidad',
    'POST /api/pos/carrito/<producto_id>/decrementar': 'Restar unidad',
    'DELETE /api/pos/carrito/<producto_id>': 'Quitar del carrito',
    'POST /api/pos/cobrar': 'Cobrar mesa',

    # Ventas
    'GET /api/ventas': 'Ver ventas',
    'GET /api/ventas/<venta_id>': 'Ver venta',

    # Clientes
    'GET /api/clientes': 'Ver clientes',
    'POST /api/clientes': 'Crear cliente',
    'PUT /api/clientes/<cliente_id>': 'Editar cliente',
    'DELETE /api/clientes/<cliente_id>': 'Eliminar cliente',
    'GET /api/clientes/top': 'Ver mejores clientes',

    # Egresos
    'GET /api/egresos': 'Ver egresos',
    'POST /api/egresos': 'Registrar egreso',
    'PUT /api/egresos/<egreso_id>': 'Editar egreso',
    'DELETE /api/egresos/<egreso_id>': 'Eliminar egreso',

    # Gastos diarios
    'GET /api/gastos-diarios': 'Ver gastos diarios',
    'POST /api/gastos-diarios': 'Registrar gasto diario',
    'DELETE /api/gastos-diarios/<gasto_id>': 'Eliminar gasto diario',

    # Reportes
    'GET /api/reporte': 'Ver reporte total',
    'GET /api/auditoria': 'Ver registro de actividad',
    'GET /api/sistema/rendimiento': 'Ver rendimiento',
}


# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def _ensure_logs_dir():
    """Crea el directorio de logs si no existe"""
    os.makedirs(LOGS_DIR, exist_ok=True)


if ENABLE_PROFILING:
    _ensure_logs_dir()


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()
_log_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES DE LOGGING
# ═══════════════════════════════════════════════════════════════════════════

def _get_timestamp():
    """Obtiene timestamp legible"""
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _write_log(filepath, content):
    """Escribe contenido a un archivo de log (thread-safe)"""
    try:
        with _log_lock:
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError:
        pass  # Un log que no se puede escribir no debe romper la petición


def _get_route_name(method, path, rule=None):
    """
    Obtiene nombre legible para una ruta.
    Primero busca la regla de Flask, luego la ruta exacta; si no, devuelve
    la ruta raw.
    """
    if rule:
        rule_key = f"{method} {rule}"
        if rule_key in ROUTE_NAMES:
            return ROUTE_NAMES[rule_key]

    key = f"{method} {path}"
    if key in ROUTE_NAMES:
        return ROUTE_NAMES[key]

    return f"{method} {path}"


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ PROFILING DE RUTAS (Middleware Flask)
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    """
    Registra el rendimiento de una ruta en performance.log

    Args:
        method: GET, POST, etc.
        path: Ruta solicitada (/api/pos/cobrar)
        rule: Regla de Flask (/api/pos/mesas/<mesa_id>/seleccionar)
        time_ms: Tiempo en milisegundos
        user: user_id de la sesión anónima (opcional)
    """
    if not ENABLE_PROFILING:
        return

    action_name = _get_route_name(method, path, rule)
    user_str = user or 'sin sesión'

    log_entry = f"""
════════════════════════════════════════
[PERFORMANCE] {_get_timestamp()}
────────────────────────────────────────
Acción: {action_name}
Usuario: {user_str}
Ruta: {method} {path}
Tiempo: {time_ms:.0f} ms
"""

    _write_log(PERFORMANCE_LOG, log_entry)


def log_slow_route(method, path, rule, time_ms, user=None, level='WARNING'):
    """
    Registra una ruta lenta en slow_routes.log

    Args:
        level: 'WARNING' (>300ms) o 'CRITICAL' (>700ms)
    """
    if not ENABLE_PROFILING:
        return

    action_name = _get_route_name(method, path, rule)
    user_str = user or 'sin sesión'
    severity = 'LENTA' if level == 'WARNING' else 'MUY LENTA'
    threshold = THRESHOLD_WARNING if level == 'WARNING' else THRESHOLD_CRITICAL

    log_entry = f"""
[{level}] {_get_timestamp()}
────────────────────────────────────────
Ruta {severity}: {action_name}
Usuario: {user_str}
Detalle: {method} {path}
Tiempo: {time_ms:.0f} ms (umbral: {threshold} ms)
────────────────────────────────────────
"""

    _write_log(SLOW_ROUTES_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app):
    """
    Inicializa el sistema de profiling en una app Flask.
    Registra hooks before_request y after_request.

    Uso:
        from refugio_pos.performance_logger import init_profiling
        init_profiling(app)
    """
    if not ENABLE_PROFILING:
        return

    from flask import g, request, session

    @app.before_request
    def _start_timer():
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000  # ms

        method = request.method
        path = request.path
        rule = str(request.url_rule) if request.url_rule else path
        user = session.get('user_id')

        if path.startswith('/static'):
            return response

        log_route_performance(method, path, rule, elapsed, user)

        if elapsed >= THRESHOLD_CRITICAL:
            log_slow_route(method, path, rule, elapsed, user, 'CRITICAL')
        elif elapsed >= THRESHOLD_WARNING:
            log_slow_route(method, path, rule, elapsed, user, 'WARNING')

        return response


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir rendimiento de funciones críticas.

    Uso:
        @profile_function
        def mi_funcion():
            ...

        @profile_function(name="Cobrar mesa")
        def checkout():
            ...

    Registra:
        - Cantidad de llamadas
        - Tiempo promedio
        - Tiempo máximo
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000

                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms

                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_slow_function_call(func_name, elapsed_ms)

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_function_call(func_name, time_ms):
    """Registra una llamada lenta a una función"""
    severity = 'CRÍTICO' if time_ms >= THRESHOLD_CRITICAL else 'LENTO'

    log_entry = f"""
[{severity}] {_get_timestamp()}
Función: {func_name}
Tiempo: {time_ms:.0f} ms
────────────────────────────────────────
"""

    _write_log(SLOW_FUNCTIONS_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 4️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Obtiene estadísticas de todas las funciones perfiladas.

    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def write_function_stats_report():
    """
    Escribe un reporte legible de estadísticas de funciones en slow_functions.log
    (se llama al cerrar la aplicación).
    """
    if not ENABLE_PROFILING:
        return

    stats = get_function_stats()
    if not stats:
        return

    sorted_stats = sorted(stats.items(), key=lambda x: x[1]['avg_time'], reverse=True)

    report = f"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  REPORTE DE RENDIMIENTO DE FUNCIONES                                         ║
║  Generado: {_get_timestamp()}                                              ║
╚══════════════════════════════════════════════════════════════════════════════╝

"""

    for func_name, data in sorted_stats:
        status = ''
        if data['avg_time'] >= THRESHOLD_CRITICAL:
            status = ' CRÍTICO'
        elif data['avg_time'] >= THRESHOLD_WARNING:
            status = ' LENTO'
        elif data['max_time'] >= THRESHOLD_CRITICAL:
            status = ' PICOS ALTOS'

        report += f"""┌──────────────────────────────────────────────────────────────────────────────┐
│ FUNCIÓN: {func_name}{status}
├──────────────────────────────────────────────────────────────────────────────┤
│ Llamadas totales: {data['calls']}
│ Tiempo promedio:  {data['avg_time']:.0f} ms
│ Tiempo máximo:    {data['max_time']:.0f} ms
└──────────────────────────────────────────────────────────────────────────────┘

"""

    _write_log(SLOW_FUNCTIONS_LOG, report)


def get_log_summary():
    """
    Obtiene un resumen del estado actual de los logs.

    Returns:
        dict: {archivo: {exists, size_kb, lines}}
    """
    summary = {}
    for name, path in [('performance', PERFORMANCE_LOG),
                       ('slow_routes', SLOW_ROUTES_LOG),
                       ('slow_functions', SLOW_FUNCTIONS_LOG)]:
        if os.path.exists(path):
            size = os.path.getsize(path) / 1024  # KB
            with open(path, 'r', encoding='utf-8') as f:
                lines = sum(1 for _ in f)
            summary[name] = {'exists': True, 'size_kb': round(size, 2), 'lines': lines}
        else:
            summary[name] = {'exists': False, 'size_kb': 0, 'lines': 0}
    return summary


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'write_function_stats_report',
    'get_log_summary',
]
