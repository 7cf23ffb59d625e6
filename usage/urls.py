"""
Usage — URL Configuration

@file usage/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import UsageRecordViewSet

app_name = 'usage'

router = DefaultRouter()
router.register('records', UsageRecordViewSet, basename='record')

urlpatterns = [
    path('', include(router.urls)),
]
