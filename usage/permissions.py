"""
Usage — Permissions

Recording and amending usage: any authenticated user. Moving billing
status forward: staff or members of the BILLING_OFFICER group.

@file usage/permissions.py
"""

from rest_framework.permissions import BasePermission

BILLING_OFFICER_GROUP = 'BILLING_OFFICER'


class CanRecordUsage(BasePermission):
    """List/retrieve/submit/amend: authenticated."""

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return True


class CanManageBilling(BasePermission):
    """Billing status changes and voids: staff or billing officers."""

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.user.is_superuser or request.user.is_staff:
            return True
        return request.user.groups.filter(name=BILLING_OFFICER_GROUP).exists()
