# core/urls.py
from django.urls import path
from . import views
from .health_check import health_check

app_name = 'core'

urlpatterns = [
    path('health/', health_check, name='health_check'),
    path('audit-logs/', views.audit_log_list, name='audit_logs'),
    path('settings/', views.system_settings, name='settings'),
]
