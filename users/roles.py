# users/roles.py
"""
Single source of truth for "is this user an administrator?".

Precedence, evaluated once here and nowhere else:
  1. role claim in the identity provider metadata (User.auth_metadata)
  2. role assigned on the staff profile (User.role)
  3. the privileged email allowlist, which always escalates to privileged

Anything unresolved is the standard role.
"""
import logging

from django.conf import settings
from django.db import DatabaseError

logger = logging.getLogger(__name__)

PRIVILEGED = 'privileged'
STANDARD = 'standard'

# Role names that map onto the privileged level
PRIVILEGED_ROLE_NAMES = ('admin',)


def privileged_emails():
    """Allowlisted emails from settings and the SystemSetting table"""
    from core.models import SystemSetting

    emails = set(email.lower() for email in getattr(settings, 'PRIVILEGED_EMAILS', []))
    try:
        emails.update(email.lower() for email in SystemSetting.get_list_setting('privileged_emails'))
    except DatabaseError as e:
        logger.warning(f"Could not read privileged_emails setting: {str(e)}")
    return emails


def _metadata_role(user):
    metadata = user.auth_metadata or {}
    for source in (metadata.get('app_metadata'), metadata.get('user_metadata'), metadata):
        if isinstance(source, dict) and source.get('role'):
            return str(source['role']).lower()
    return None


def _profile_role(user):
    try:
        role = user.role
    except DatabaseError as e:
        logger.warning(f"Profile role lookup failed for user {user.pk}: {str(e)}")
        return None
    if role is None or role.is_archived:
        return None
    return role.name


def resolve_role(user):
    """
    Map an authenticated user to PRIVILEGED or STANDARD.

    Returns STANDARD for anonymous users.
    """
    if user is None or not user.is_authenticated:
        return STANDARD

    role_name = _metadata_role(user) or _profile_role(user)

    email = (user.email or '').lower()
    if email and email in privileged_emails():
        role_name = 'admin'

    return PRIVILEGED if role_name in PRIVILEGED_ROLE_NAMES else STANDARD


def is_privileged(user):
    return resolve_role(user) == PRIVILEGED


def module_permissions(user):
    """Module permission map for a non-privileged user"""
    from .models import Role

    role = None
    try:
        role = user.role
    except DatabaseError as e:
        logger.warning(f"Permission lookup failed for user {user.pk}: {str(e)}")

    if role is not None and role.is_archived:
        return {}
    if role is not None and role.permissions:
        return role.permissions
    return Role.DEFAULT_PERMISSIONS[Role.DOCTOR]
