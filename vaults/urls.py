"""
Vault URLs
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from vaults import views

app_name = 'vaults'

router = DefaultRouter()
router.register(r'items', views.VaultViewSet, basename='vault')

urlpatterns = [
    path('generate-password/', views.generate_password, name='generate-password'),

    # Lock endpoints, never behind the VaultUnlocked permission
    path('lock/', views.lock, name='lock'),
    path('lock/status/', views.lock_status, name='lock-status'),
    path('lock/set-pin/', views.set_pin, name='set-pin'),
    path('lock/unlock/', views.unlock, name='unlock'),

    path('', include(router.urls)),
]
