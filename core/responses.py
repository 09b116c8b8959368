# core/responses.py
"""
JSON helpers shared by the invoice, settlement and report endpoints
"""
import json
import logging
from functools import wraps

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import JsonResponse

from .exceptions import ClinicError

logger = logging.getLogger(__name__)


def json_error(message, status=400, **extra):
    """Build the standard error payload"""
    payload = {'success': False, 'error': message}
    payload.update(extra)
    return JsonResponse(payload, status=status)


def validation_message(error):
    """Flatten a ValidationError into one readable sentence"""
    if hasattr(error, 'error_dict'):
        parts = []
        for field, messages in error.message_dict.items():
            for message in messages:
                parts.append(message if field == '__all__' else f"{field}: {message}")
        return ' '.join(parts)
    return ' '.join(error.messages)


def parse_json_body(request):
    """Decode a JSON request body into a dict"""
    try:
        data = json.loads(request.body or b'{}')
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError('Invalid data format.')
    if not isinstance(data, dict):
        raise ValidationError('Invalid data format.')
    return data


def handle_domain_errors(view_func):
    """
    Turn domain errors raised inside a view into JSON responses

    ValidationError -> 400, PermissionDenied -> 403, ClinicError subclasses ->
    their own status code.
    Anything else is logged and reported as a generic 500.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except ValidationError as e:
            return json_error(validation_message(e), status=400)
        except PermissionDenied as e:
            return json_error(str(e) or 'Permission denied', status=403)
        except ClinicError as e:
            payload = e.as_dict()
            message = payload.pop('error')
            return json_error(message, status=e.status_code, **payload)
        except Exception:
            logger.exception(f"Unhandled error in {view_func.__name__}")
            return json_error('An unexpected error occurred. Please try again.', status=500)
    return wrapper


def module_permission_required(module_name):
    """Reject users whose role lacks access to a module with a JSON 403"""
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if not request.user.has_permission(module_name):
                logger.warning(f"User {request.user.username} denied access to {module_name}")
                return json_error('You do not have permission to access this page.', status=403)
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
