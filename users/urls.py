"""
User, role and permission URLs
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from users import views

app_name = 'users'

router = DefaultRouter()
router.register(r'users', views.UserViewSet, basename='user')
router.register(r'roles', views.RoleViewSet, basename='role')

urlpatterns = [
    path('permissions/', views.permission_list, name='permissions'),
    path('', include(router.urls)),
]
