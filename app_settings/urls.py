"""
Settings URLs
"""

from django.urls import path
from app_settings import views

app_name = 'app_settings'

urlpatterns = [
    path('', views.settings_index, name='index'),
]
