# users/admin.py
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, Role


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'display_name', 'is_archived', 'updated_at']
    list_filter = ['is_archived']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'first_name', 'last_name', 'role', 'is_active_doctor', 'is_active']
    list_filter = ['role', 'is_active_doctor', 'is_active', 'is_superuser']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Clinic', {
            'fields': ('role', 'phone', 'is_active_doctor', 'auth_metadata')
        }),
    )
