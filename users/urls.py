# users/urls.py
from django.urls import path
from . import views

app_name = 'users'

urlpatterns = [
    path('me/', views.current_profile, name='current_profile'),
    path('staff/', views.staff_list, name='staff_list'),
]
