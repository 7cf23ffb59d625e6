"""
Reconciliation — URL Configuration

@file reconciliation/urls.py
"""

from django.urls import path

from .views import CompareView, UsageBySupplyView

app_name = 'reconciliation'

urlpatterns = [
    path('compare/', CompareView.as_view(), name='compare'),
    path('usage-by-supply/', UsageBySupplyView.as_view(), name='usage-by-supply'),
]
