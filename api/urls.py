"""
API URLs for AdminHub
"""
from django.urls import path, include
from rest_framework_simplejwt.views import TokenRefreshView

from users.views import LoginView

urlpatterns = [
    # JWT Authentication
    path('auth/login/', LoginView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Modules
    path('audit/', include('audit.urls')),
    path('settings/', include('app_settings.urls')),
    path('notifications/', include('notifications.urls')),
    path('vaults/', include('vaults.urls')),
    path('dashboard/', include('dashboard.urls')),

    # Menus, categories, users, roles, permissions
    path('', include('common.urls')),
    path('', include('users.urls')),
]
