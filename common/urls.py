"""
Common URLs
"""

from django.urls import path
from common import views

app_name = 'common'

urlpatterns = [
    path('menus/', views.menu_list, name='menus'),
    path('categories/', views.category_list, name='categories'),
]
