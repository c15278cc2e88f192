from flask import Flask, request, session, Response, stream_with_context
from functools import wraps
from werkzeug.exceptions import HTTPException
from queue import Queue, Empty
import os
import json
import datetime
import atexit

# Sistema de profiling interno
from refugio_pos.performance_logger import (
    init_profiling,
    get_function_stats,
    get_log_summary,
    write_function_stats_report,
)

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y Repositorios
# ═══════════════════════════════════════════════════════════════════════════
# Las rutas solo leen la petición, llaman a un servicio y traducen su
# resultado {'ok', 'error', 'error_type'} a una respuesta HTTP.
# ═══════════════════════════════════════════════════════════════════════════
from refugio_pos.app_container import get_container
from refugio_pos.models import PosSession
from refugio_pos.repositories import StoreError
from refugio_pos.services.session_service import SESSION_CSRF_KEY, SESSION_USER_KEY
from refugio_pos.services.validation import (
    ALMACEN,
    NO_ENCONTRADO,
    STOCK_INSUFICIENTE,
    VALIDACION,
    to_int,
)

app = Flask(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZAR SISTEMA DE PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Mide rendimiento de rutas y funciones. Logs en REFUGIO_LOGS_DIR
# Para desactivar: REFUGIO_PROFILING=0
init_profiling(app)

BASE = os.path.dirname(os.path.abspath(__file__))

# ═══════════════════════════════════════════════════════════════════════════════
# MODO PRODUCCIÓN
# ═══════════════════════════════════════════════════════════════════════════════
PRODUCTION_MODE = os.environ.get('REFUGIO_PRODUCTION', '0') == '1'

# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN DE SESIONES
# ═══════════════════════════════════════════════════════════════════════════════
# SECRET_KEY: En producción DEBE definirse via variable de entorno
# Comando: export REFUGIO_SECRET_KEY="tu_clave_secreta_muy_larga_y_aleatoria"
_DEFAULT_SECRET = "refugio_pos_dev_secret_key_change_in_production"
_SECRET_KEY = os.environ.get("REFUGIO_SECRET_KEY")

if PRODUCTION_MODE and not _SECRET_KEY:
    print("[ADVERTENCIA] REFUGIO_PRODUCTION activo sin REFUGIO_SECRET_KEY definida")
    print("[ADVERTENCIA] Define la variable de entorno para mayor seguridad")

app.secret_key = _SECRET_KEY or _DEFAULT_SECRET

app.config.update(
    SESSION_COOKIE_HTTPONLY=True,      # Protege contra XSS
    SESSION_COOKIE_SECURE=False,       # False para HTTP local (True solo para HTTPS)
    SESSION_COOKIE_SAMESITE='Lax',
    # La sesión anónima identifica al usuario: debe sobrevivir recargas
    PERMANENT_SESSION_LIFETIME=datetime.timedelta(days=365),
    DATA_DIR=os.environ.get('REFUGIO_DATA_DIR') or os.path.join(BASE, 'data'),
)

# Segundos entre comentarios keepalive del stream en vivo
STREAM_KEEPALIVE = 15

# Estado HTTP para cada error_type de los servicios
ERROR_STATUS = {
    VALIDACION: 400,
    NO_ENCONTRADO: 404,
    STOCK_INSUFICIENTE: 409,
    ALMACEN: 503,
}

POS_SESSION_KEY = 'pos'


def container():
    return get_container(app.config['DATA_DIR'])


@atexit.register
def _write_stats_on_exit():
    write_function_stats_report()


# ═══════════════════════════════════════════════════════════════════════════
# SESIÓN ANÓNIMA Y CSRF
# ═══════════════════════════════════════════════════════════════════════════

@app.before_request
def ensure_anonymous_session():
    """Toda petición queda asociada a un user_id anónimo estable."""
    c = container()
    c.session_service.ensure_session(session)
    c.session_service.ensure_csrf_token(session)


def current_user():
    return session[SESSION_USER_KEY]


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method in ('POST', 'PUT', 'DELETE'):
            token = session.get(SESSION_CSRF_KEY)
            form_token = (
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken')  # Common JS naming
            )
            if not form_token and request.is_json:
                json_data = request.get_json(silent=True) or {}
                form_token = json_data.get('csrf_token')

            if not token or not form_token or token != form_token:
                return {"ok": False, "error": "CSRF token inválido"}, 403
        return f(*args, **kwargs)
    return wrapper


@app.after_request
def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    # NOTA: HSTS solo en producción con HTTPS real
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ═══════════════════════════════════════════════════════════════════════════
# MANEJO DE ERRORES
# ═══════════════════════════════════════════════════════════════════════════

@app.errorhandler(StoreError)
def handle_store_error(e):
    print(f"[ERROR] Almacén: {e}")
    return {"ok": False, "error": f"Error de almacenamiento: {e}", "error_type": ALMACEN}, 503


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return {"ok": False, "error": e.description}, e.code
    print(f"[ERROR] {request.method} {request.path}: {e}")
    return {"ok": False, "error": f"Error interno: {e}"}, 500


def respond(result, status=200):
    """Traduce el dict de un servicio a (body, status)."""
    if result.get('ok'):
        return result, status
    return result, ERROR_STATUS.get(result.get('error_type'), 400)


def json_body():
    return request.get_json(silent=True) or {}


def require_confirmation():
    """Las bajas piden {"confirmar": true} en el cuerpo."""
    if json_body().get('confirmar') is not True:
        return {"ok": False, "error": "Confirme la eliminación", "error_type": VALIDACION}, 400
    return None


def query_flag(name, default=False):
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'si', 'sí', 'on')


# ═══════════════════════════════════════════════════════════════════════════
# ESTADO DEL PUNTO DE VENTA (en la sesión)
# ═══════════════════════════════════════════════════════════════════════════

def load_pos():
    return PosSession.from_dict(session.get(POS_SESSION_KEY))


def save_pos(pos):
    session[POS_SESSION_KEY] = pos.to_dict()
    session.modified = True


def pos_response(pos, result):
    """Guarda el estado y agrega el resumen del carrito a la respuesta."""
    save_pos(pos)
    if result.get('ok'):
        result = dict(result, pos=container().cart_service.get_state(pos))
    return respond(result)


# ═══════════════════════════════════════════════════════════════════════════
# SESIÓN
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/session", methods=["GET"])
def api_session():
    """Devuelve el user_id anónimo y el token CSRF de la sesión."""
    return {
        "ok": True,
        "user_id": current_user(),
        "csrf_token": session.get(SESSION_CSRF_KEY),
    }


# ═══════════════════════════════════════════════════════════════════════════
# INSUMOS
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/insumos", methods=["GET"])
def api_insumos_list():
    items = container().inventory_service.list_insumos(current_user(), request.args.get('q', ''))
    return {"ok": True, "insumos": items, "count": len(items)}


@app.route("/api/insumos", methods=["POST"])
@verify_csrf
def api_insumos_create():
    return respond(container().inventory_service.add_insumo(current_user(), json_body()), 201)


@app.route("/api/insumos/stock-bajo", methods=["GET"])
def api_insumos_low_stock():
    items = container().inventory_service.get_low_stock(current_user())
    return {"ok": True, "insumos": items, "count": len(items)}


@app.route("/api/insumos/<insumo_id>", methods=["PUT"])
@verify_csrf
def api_insumos_update(insumo_id):
    return respond(container().inventory_service.update_insumo(current_user(), insumo_id, json_body()))


@app.route("/api/insumos/<insumo_id>", methods=["DELETE"])
@verify_csrf
def api_insumos_delete(insumo_id):
    error = require_confirmation()
    if error:
        return error
    return respond(container().inventory_service.delete_insumo(current_user(), insumo_id))


@app.route("/api/insumos/<insumo_id>/stock", methods=["POST"])
@verify_csrf
def api_insumos_add_stock(insumo_id):
    delta = json_body().get('cantidad')
    return respond(container().inventory_service.update_stock(current_user(), insumo_id, delta))


# ═══════════════════════════════════════════════════════════════════════════
# KITS
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/kits", methods=["GET"])
def api_kits_list():
    kits = container().kit_service.list_kits(current_user(), request.args.get('q', ''))
    return {"ok": True, "kits": kits, "count": len(kits)}


@app.route("/api/kits", methods=["POST"])
@verify_csrf
def api_kits_create():
    data = json_body()
    result = container().kit_service.create_kit(
        current_user(),
        data.get('nombre'),
        data.get('componentes') or [],
        data.get('ganancia_porcentaje'),
        data.get('cantidad', 0),
    )
    return respond(result, 201)


@app.route("/api/kits/<kit_id>/stock", methods=["POST"])
@verify_csrf
def api_kits_add_stock(kit_id):
    delta = json_body().get('cantidad')
    return respond(container().kit_service.update_kit_stock(current_user(), kit_id, delta))


@app.route("/api/kits/<kit_id>", methods=["DELETE"])
@verify_csrf
def api_kits_delete(kit_id):
    error = require_confirmation()
    if error:
        return error
    return respond(container().kit_service.delete_kit(current_user(), kit_id))


# ═══════════════════════════════════════════════════════════════════════════
# REPORTES DE INVENTARIO
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/inventario/ventas-esperadas", methods=["GET"])
def api_expected_sales():
    return respond(container().report_service.expected_sales(current_user()))


@app.route("/api/inventario/mas-vendidos", methods=["GET"])
def api_best_sellers():
    return respond(container().report_service.best_sellers(current_user()))


@app.route("/api/inventario/stream", methods=["GET"])
def api_inventory_stream():
    """
    Inventario en vivo (Server-Sent Events).

    Cada snapshot de insumos o kits se envía como un evento con
    {loading, error, data}. Al cerrarse la conexión la vista libera sus
    suscripciones.
    """
    user_id = current_user()
    view = container().inventory_view()
    events = Queue()
    view.add_listener(events.put)

    @stream_with_context
    def generate():
        view.open(user_id)
        try:
            while True:
                try:
                    state = events.get(timeout=STREAM_KEEPALIVE)
                except Empty:
                    yield ": keepalive\n\n"
                    continue
                yield f"data: {json.dumps(state, ensure_ascii=False, default=str)}\n\n"
        finally:
            view.close()

    return Response(generate(), mimetype='text/event-stream', headers={'Cache-Control': 'no-cache'})


# ═══════════════════════════════════════════════════════════════════════════
# PUNTO DE VENTA
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/pos", methods=["GET"])
def api_pos_state():
    pos = load_pos()
    return {"ok": True, "pos": container().cart_service.get_state(pos)}


@app.route("/api/pos/catalogo", methods=["GET"])
def api_pos_catalog():
    catalog = container().cart_service.get_catalog(current_user(), request.args.get('q', ''))
    return {"ok": True, "productos": [p.to_dict() for p in catalog], "count": len(catalog)}


@app.route("/api/pos/clientes", methods=["GET"])
def api_pos_clients():
    clients = container().cart_service.search_clients(current_user(), request.args.get('q', ''))
    return {"ok": True, "clientes": clients, "count": len(clients)}


@app.route("/api/pos/mesas", methods=["POST"])
@verify_csrf
def api_pos_add_table():
    pos = load_pos()
    mesa = container().cart_service.add_table(pos)
    return pos_response(pos, {"ok": True, "mesa": mesa})


@app.route("/api/pos/mesas/<mesa_id>/seleccionar", methods=["POST"])
@verify_csrf
def api_pos_select_table(mesa_id):
    pos = load_pos()
    result = container().cart_service.select_table(current_user(), pos, mesa_id)
    return pos_response(pos, result)


@app.route("/api/pos/cliente", methods=["POST"])
@verify_csrf
def api_pos_attach_client():
    pos = load_pos()
    result = container().cart_service.attach_client(current_user(), pos, json_body().get('cliente_id'))
    return pos_response(pos, result)


@app.route("/api/pos/cliente", methods=["DELETE"])
@verify_csrf
def api_pos_detach_client():
    pos = load_pos()
    return pos_response(pos, container().cart_service.detach_client(pos))


@app.route("/api/pos/carrito", methods=["POST"])
@verify_csrf
def api_pos_add_to_cart():
    data = json_body()
    pos = load_pos()
    result = container().cart_service.add_to_cart(
        current_user(), pos, data.get('tipo', 'insumo'), data.get('producto_id')
    )
    return pos_response(pos, result)


@app.route("/api/pos/carrito/<producto_id>/incrementar", methods=["POST"])
@verify_csrf
def api_pos_increment(producto_id):
    pos = load_pos()
    return pos_response(pos, container().cart_service.increment_line(pos, producto_id))


@app.route("/api/pos/carrito/<producto_id>/decrementar", methods=["POST"])
@verify_csrf
def api_pos_decrement(producto_id):
    pos = load_pos()
    return pos_response(pos, container().cart_service.decrement_line(pos, producto_id))


@app.route("/api/pos/carrito/<producto_id>", methods=["DELETE"])
@verify_csrf
def api_pos_remove(producto_id):
    pos = load_pos()
    return pos_response(pos, container().cart_service.remove_line(pos, producto_id))


@app.route("/api/pos/cobrar", methods=["POST"])
@verify_csrf
def api_pos_checkout():
    """
    Cobra la mesa seleccionada.

    Body: {"metodo_pago": "efectivo", "pagos": {"efectivo": 50}}
    """
    data = json_body()
    pos = load_pos()
    result = container().sales_service.checkout(
        current_user(), pos, data.get('metodo_pago'), data.get('pagos')
    )
    # En caso de error el carrito queda intacto para corregir y reintentar
    save_pos(pos)
    return respond(result, 201)


# ═══════════════════════════════════════════════════════════════════════════
# VENTAS
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/ventas", methods=["GET"])
def api_sales_list():
    ventas = container().sales_service.list_sales(current_user())
    return {"ok": True, "ventas": ventas, "count": len(ventas)}


@app.route("/api/ventas/<venta_id>", methods=["GET"])
def api_sales_detail(venta_id):
    return respond(container().sales_service.sale_or_error(current_user(), venta_id))


# ═══════════════════════════════════════════════════════════════════════════
# CLIENTES
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/clientes", methods=["GET"])
def api_clients_list():
    clientes = container().client_service.list_clients(current_user(), request.args.get('q', ''))
    return {"ok": True, "clientes": clientes, "count": len(clientes)}


@app.route("/api/clientes/top", methods=["GET"])
def api_clients_top():
    return {"ok": True, "top": container().client_service.get_top_consumers(current_user())}


@app.route("/api/clientes", methods=["POST"])
@verify_csrf
def api_clients_create():
    return respond(container().client_service.create_client(current_user(), json_body()), 201)


@app.route("/api/clientes/<cliente_id>", methods=["PUT"])
@verify_csrf
def api_clients_update(cliente_id):
    return respond(container().client_service.update_client(current_user(), cliente_id, json_body()))


@app.route("/api/clientes/<cliente_id>", methods=["DELETE"])
@verify_csrf
def api_clients_delete(cliente_id):
    error = require_confirmation()
    if error:
        return error
    return respond(container().client_service.delete_client(current_user(), cliente_id))


# ═══════════════════════════════════════════════════════════════════════════
# EGRESOS
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/egresos", methods=["GET"])
def api_expenses_list():
    result = container().expense_service.list_expenses(
        current_user(),
        quien_pago=request.args.get('quien_pago', ''),
        tipo=request.args.get('tipo', ''),
        desde=request.args.get('desde'),
        hasta=request.args.get('hasta'),
        solo_hoy=query_flag('solo_hoy'),
        page=to_int(request.args.get('page'), 1),
    )
    return respond(result)


@app.route("/api/egresos", methods=["POST"])
@verify_csrf
def api_expenses_create():
    return respond(container().expense_service.create_expense(current_user(), json_body()), 201)


@app.route("/api/egresos/<egreso_id>", methods=["PUT"])
@verify_csrf
def api_expenses_update(egreso_id):
    return respond(container().expense_service.update_expense(current_user(), egreso_id, json_body()))


@app.route("/api/egresos/<egreso_id>", methods=["DELETE"])
@verify_csrf
def api_expenses_delete(egreso_id):
    error = require_confirmation()
    if error:
        return error
    return respond(container().expense_service.delete_expense(current_user(), egreso_id))


# ═══════════════════════════════════════════════════════════════════════════
# GASTOS DIARIOS
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/gastos-diarios", methods=["GET"])
def api_daily_list():
    service = container().daily_expense_service
    result = service.list_daily_expenses(
        current_user(), request.args.get('q', ''), solo_hoy=query_flag('solo_hoy', True)
    )
    return respond(dict(result, pagadores=service.payers()))


@app.route("/api/gastos-diarios", methods=["POST"])
@verify_csrf
def api_daily_create():
    return respond(container().daily_expense_service.create_daily_expense(current_user(), json_body()), 201)


@app.route("/api/gastos-diarios/<gasto_id>", methods=["DELETE"])
@verify_csrf
def api_daily_delete(gasto_id):
    error = require_confirmation()
    if error:
        return error
    return respond(container().daily_expense_service.delete_daily_expense(current_user(), gasto_id))


# ═══════════════════════════════════════════════════════════════════════════
# REPORTES Y SISTEMA
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/reporte", methods=["GET"])
def api_total_report():
    result = container().report_service.total_report(
        current_user(), request.args.get('desde'), request.args.get('hasta')
    )
    return respond(result)


@app.route("/api/auditoria", methods=["GET"])
def api_audit():
    logs = container().audit_service.search_logs(
        current_user(), request.args.get('q', ''), request.args.get('tipo') or None
    )
    return {"ok": True, "logs": logs, "count": len(logs)}


@app.route("/api/sistema/rendimiento", methods=["GET"])
def api_performance():
    return {"ok": True, "funciones": get_function_stats(), "logs": get_log_summary()}


# ═══════════════════════════════════════════════════════════════════════════════
# PROTECCIÓN DE RUTAS SENSIBLES
# ═══════════════════════════════════════════════════════════════════════════════
@app.route('/data/<path:filename>')
@app.route('/logs/<path:filename>')
def block_sensitive_routes(filename):
    """Bloquea acceso a las carpetas de datos y logs."""
    return "Not Found", 404


if __name__ == "__main__":
    # Configuración para desarrollo local y acceso desde red WiFi
    # En producción usar WSGI (gunicorn wsgi:app)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    if not DEBUG:
        print(f"\n{'='*50}")
        print(f"  Servidor iniciado en http://{HOST}:{PORT}")
        print(f"  Acceso local: http://localhost:{PORT}")
        print(f"{'='*50}\n")

    app.run(host=HOST, port=PORT, debug=DEBUG, threaded=True)
