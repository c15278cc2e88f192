# ==============================================================================
# SERVICIO DE SESIÓN ANÓNIMA
# ==============================================================================
# No hay login: cada navegador recibe un user_id anónimo que se guarda en la
# cookie de sesión permanente de Flask y aísla sus datos del resto.
# ==============================================================================

import uuid
from typing import Any, MutableMapping

from refugio_pos.services.audit_service import AuditService

SESSION_USER_KEY = 'user_id'
SESSION_CSRF_KEY = 'csrf_token'


class SessionService:
    """
    Inicio de sesión anónima.

    ensure_session() es idempotente: si la sesión ya tiene user_id lo
    devuelve sin cambios.
    """

    def __init__(self, audit_service: AuditService = None):
        self.audit_service = audit_service

    def ensure_session(self, session: MutableMapping[str, Any]) -> str:
        """
        Garantiza que la sesión tenga un user_id estable.

        Args:
            session: Sesión de Flask (o cualquier mapping mutable)

        Returns:
            user_id de la sesión
        """
        user_id = session.get(SESSION_USER_KEY)
        if user_id:
            return user_id

        user_id = uuid.uuid4().hex
        session[SESSION_USER_KEY] = user_id
        # Cookie persistente entre recargas y reinicios del navegador
        if hasattr(session, 'permanent'):
            session.permanent = True

        if self.audit_service:
            self.audit_service.log_session_started(user_id)
        return user_id

    @staticmethod
    def ensure_csrf_token(session: MutableMapping[str, Any]) -> str:
        if SESSION_CSRF_KEY not in session:
            session[SESSION_CSRF_KEY] = uuid.uuid4().hex
        return session[SESSION_CSRF_KEY]
