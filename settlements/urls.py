# settlements/urls.py
from django.urls import path
from . import views

app_name = 'settlements'

urlpatterns = [
    path('', views.settlement_history, name='history'),
    path('period/', views.period_detail, name='period'),
    path('compute/', views.compute_settlement, name='compute'),
    path('save/', views.save_settlement, name='save'),
    path('<int:pk>/unlock/', views.unlock_settlement, name='unlock'),
    path('<int:pk>/delete/', views.delete_settlement, name='delete'),
    path('<int:pk>/pdf/', views.settlement_pdf, name='pdf'),
]
