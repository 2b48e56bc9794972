from django.shortcuts import redirect
import logging
from .decorators import ADMIN_ROLE, STAFF_ROLES

logger = logging.getLogger(__name__)

PUBLIC_PATH_PREFIXES = (
    '/login/',
    '/static/',
)

# Signed-in users are sent home from these
ANONYMOUS_ONLY_PATHS = ('/login/', '/login/register/')


class BackendAuthMiddleware:
    """
    Gate every page on a backend session.

    Anonymous requests outside the public prefixes go to the login page.
    Signed-in requests get ``role``, ``is_admin`` and ``is_staff_user`` set
    from the session so views and context processors need not re-read it.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        session = request.session
        is_authenticated = 'user_id' in session

        if is_authenticated and request.path in ANONYMOUS_ONLY_PATHS:
            return redirect('dashboard')

        if not is_authenticated and not request.path.startswith(PUBLIC_PATH_PREFIXES):
            logger.debug(f"Anonymous request to {request.path} sent to login")
            return redirect('login:login_page')

        request.user_authenticated = is_authenticated
        request.role = session.get('role') if is_authenticated else None
        request.username = session.get('username') if is_authenticated else None
        request.is_admin = request.role == ADMIN_ROLE
        request.is_staff_user = request.role in STAFF_ROLES

        return self.get_response(request)
