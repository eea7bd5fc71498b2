"""
Signal notification URLs
"""

from django.urls import path, include
from rest_framework.routers import SimpleRouter
from notifications import views

app_name = 'notifications'

router = SimpleRouter()
router.register(r'', views.NotificationViewSet, basename='notification')

urlpatterns = [
    path('', include(router.urls)),
]
