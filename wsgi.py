# ==============================================================================
# WSGI Entry Point - Para Gunicorn en producción
# ==============================================================================
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT --threads 4
#
# ESTRUCTURA DEL PROYECTO:
#   repo_root/           <- Directorio de trabajo (en sys.path automáticamente)
#   ├── wsgi.py          <- Este archivo
#   ├── pyproject.toml
#   └── refugio_pos/     <- Paquete Python
#       ├── __init__.py
#       ├── main.py
#       ├── services/
#       └── repositories/
#
# Variables de entorno:
#   REFUGIO_SECRET_KEY, REFUGIO_PRODUCTION, REFUGIO_DATA_DIR,
#   REFUGIO_PROFILING, REFUGIO_LOGS_DIR
# ==============================================================================

from refugio_pos.main import app

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000, threaded=True)
