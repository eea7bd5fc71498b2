"""
Dashboard API URLs
"""

from django.urls import path
from . import views

app_name = 'dashboard'

urlpatterns = [
    path('', views.overview, name='overview'),
    path('<slug:module>/', views.module_dashboard, name='module'),
]
