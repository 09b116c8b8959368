# invoices/urls.py
from django.urls import path
from . import views

app_name = 'invoices'

urlpatterns = [
    path('', views.invoice_list, name='invoice_list'),
    path('categories/', views.category_list, name='category_list'),
    path('preview/', views.preview_receipt, name='preview_receipt'),
    path('confirm/', views.confirm_invoice, name='confirm_invoice'),
    path('calendar/', views.invoice_calendar, name='invoice_calendar'),
    path('drafts/', views.draft_queue, name='draft_queue'),
    path('<int:pk>/', views.invoice_detail, name='invoice_detail'),
    path('<int:pk>/confirm/', views.confirm_draft, name='confirm_draft'),
    path('<int:pk>/delete/', views.delete_invoice, name='delete_invoice'),
]
