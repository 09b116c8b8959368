# core/middleware.py
"""
Middleware to track the current user for audit logging
This allows signals to access the current user when invoices and
settlements are saved
"""

import threading

from django.utils.cache import add_never_cache_headers

# Thread-local storage for the current request
_thread_locals = threading.local()


def get_current_user():
    """Get the current user from thread-local storage"""
    return getattr(_thread_locals, 'user', None)


def get_current_request():
    """Get the current request from thread-local storage"""
    return getattr(_thread_locals, 'request', None)


def set_current_user(user, request=None):
    """Set the current user (and request) in thread-local storage"""
    _thread_locals.user = user
    _thread_locals.request = request


class AuditMiddleware:
    """
    Stores the authenticated user in thread-local storage so signal
    handlers can attribute changes
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        user = getattr(request, 'user', None)
        if user and user.is_authenticated:
            set_current_user(user, request)
        else:
            set_current_user(None, request)

        try:
            return self.get_response(request)
        finally:
            set_current_user(None)


class NoCacheMiddleware:
    """
    Prevent browsers from caching authenticated responses, so figures
    are never shown stale after a settlement is unlocked or re-saved
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        user = getattr(request, 'user', None)
        if user and user.is_authenticated:
            add_never_cache_headers(response)
            response['Cache-Control'] = 'no-cache, no-store, must-revalidate, max-age=0'
            response['Pragma'] = 'no-cache'
            response['Expires'] = '0'

        return response
