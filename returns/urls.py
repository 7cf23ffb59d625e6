"""
Returns — URL Configuration

@file returns/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ReturnEventViewSet

app_name = 'returns'

router = DefaultRouter()
router.register('events', ReturnEventViewSet, basename='return')

urlpatterns = [
    path('', include(router.urls)),
]
