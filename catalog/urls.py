"""
Catalog — URL Configuration

@file catalog/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import SupplyCatalogViewSet

app_name = 'catalog'

router = DefaultRouter()
router.register('supplies', SupplyCatalogViewSet, basename='supply')

urlpatterns = [
    path('', include(router.urls)),
]
