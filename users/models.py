# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class Role(models.Model):
    ADMIN = 'admin'
    DOCTOR = 'doctor'

    ROLE_CHOICES = [
        (ADMIN, 'Administrador'),
        (DOCTOR, 'Doctor'),
    ]

    DEFAULT_PERMISSIONS = {
        ADMIN: {
            'dashboard': True,
            'invoices': True,
            'settlements': True,
            'reports': True,
        },
        DOCTOR: {
            'dashboard': True,
            'invoices': True,
            'settlements': False,
            'reports': True,
        },
    }

    name = models.CharField(max_length=50, unique=True, choices=ROLE_CHOICES)
    display_name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    permissions = models.JSONField(default=dict, blank=True, help_text="Module permissions")
    is_archived = models.BooleanField(default=False, help_text="Archived roles grant no access")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.display_name

    def save(self, *args, **kwargs):
        # Fill in default module permissions for the built-in roles
        if not self.permissions and self.name in self.DEFAULT_PERMISSIONS:
            self.permissions = dict(self.DEFAULT_PERMISSIONS[self.name])
        if not self.display_name:
            self.display_name = dict(self.ROLE_CHOICES).get(self.name, self.name)
        super().save(*args, **kwargs)


class User(AbstractUser):
    """Clinic staff member; doctors earn commission on their invoices"""
    role = models.ForeignKey(Role, on_delete=models.PROTECT, null=True, blank=True, related_name='users')
    phone = models.CharField(max_length=20, blank=True)
    auth_metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Claims supplied by the identity provider (may include a 'role')"
    )
    is_active_doctor = models.BooleanField(default=False, help_text="Receives monthly settlements")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_full_name()} ({self.username})"

    @property
    def full_name(self):
        return self.get_full_name() or self.username

    @property
    def is_privileged(self):
        """True when the resolved role is the privileged one"""
        from .roles import is_privileged
        return is_privileged(self)

    def has_permission(self, module_name):
        """Check if user has permission for a specific module"""
        if self.is_superuser or self.is_privileged:
            return True
        from .roles import module_permissions
        return module_permissions(self).get(module_name, False)
