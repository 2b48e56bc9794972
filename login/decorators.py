"""
Security decorators for access control and authorization.

These decorators ensure users are signed in to the backend before a page runs
and that admin / staff pages are only reachable with the matching role.
"""
from functools import wraps
from time import time
from django.conf import settings
from django.shortcuts import redirect
from django.contrib import messages
import logging

logger = logging.getLogger(__name__)

ADMIN_ROLE = 'admin'
STAFF_ROLES = ('admin', 'employee')


def require_authentication(view_func):
    """
    Decorator to ensure user is authenticated before accessing a view.
    Redirects to login page if not authenticated.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if 'user_id' not in request.session:
            logger.warning(f"Unauthenticated access attempt to {view_func.__name__}")
            messages.warning(request, "⚠️ Please log in to access this page.")
            return redirect('login:login_page')
        return view_func(request, *args, **kwargs)
    return wrapper


def require_role(*roles):
    """
    Decorator to restrict a view to users whose backend role is in ``roles``.

    Usage:
        @require_role('admin', 'employee')
        def raw_material_list(request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if 'user_id' not in request.session:
                logger.warning(f"Unauthenticated access attempt to {view_func.__name__}")
                messages.warning(request, "⚠️ Please log in to access this page.")
                return redirect('login:login_page')

            role = request.session.get('role')
            if role not in roles:
                logger.warning(
                    f"Access denied: user {request.session.get('user_id')} with role "
                    f"'{role}' attempted {view_func.__name__}"
                )
                messages.error(request, "⚠️ You don't have permission to access this page.")
                return redirect('dashboard')
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


require_admin = require_role(ADMIN_ROLE)
require_staff = require_role(*STAFF_ROLES)


def client_ip(request):
    """Address used for throttling. X-Forwarded-For is only honoured behind a trusted proxy."""
    if getattr(settings, 'RATE_LIMIT_TRUST_FORWARDED', False):
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def rate_limit(max_attempts=5, window_seconds=300):
    """
    Simple rate limiting decorator to prevent brute force attacks.

    Only POST requests count as attempts.

    Usage:
        @rate_limit(max_attempts=5, window_seconds=300)
        def login_view(request):
            ...
    """
    def decorator(view_func):
        # Per-process memory; each worker keeps its own counts
        attempts = {}

        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if request.method != 'POST':
                return view_func(request, *args, **kwargs)

            ip = client_ip(request)
            current_time = time()

            # Forget addresses whose attempts have all expired
            stale = [key for key, stamps in attempts.items()
                     if not stamps or current_time - stamps[-1] >= window_seconds]
            for key in stale:
                del attempts[key]

            attempt_list = [t for t in attempts.get(ip, []) if current_time - t < window_seconds]
            if len(attempt_list) >= max_attempts:
                logger.warning(
                    f"Rate limit exceeded for IP {ip} on {view_func.__name__}"
                )
                messages.error(
                    request,
                    f"⚠️ Too many attempts. Please try again in {window_seconds // 60} minutes."
                )
                return redirect('login:login_page')

            attempts[ip] = attempt_list + [current_time]
            return view_func(request, *args, **kwargs)

        wrapper.attempts = attempts
        return wrapper
    return decorator
