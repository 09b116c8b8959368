# vet_clinic_project/urls.py
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('core.urls', namespace='core')),
    path('users/', include('users.urls', namespace='users')),
    path('invoices/', include('invoices.urls', namespace='invoices')),
    path('settlements/', include('settlements.urls', namespace='settlements')),
    path('reports/', include('reports.urls', namespace='reports')),
]
