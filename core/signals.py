"""
Core — Signals

Default domain-event sink: every published event becomes an AuditLog row.

@file core/signals.py
"""

from django.dispatch import receiver

from core.constants import AUDIT_ACTION_UPDATE, EVENT_AUDIT_ACTIONS
from core.events import domain_event
from core.services import AuditService


@receiver(domain_event)
def write_audit_log(sender, event, model_name, object_id, actor, payload, timestamp, **kwargs):
    new_values = dict(payload)
    new_values['timestamp'] = timestamp.isoformat()
    AuditService.log(
        actor=actor,
        action=EVENT_AUDIT_ACTIONS.get(event, AUDIT_ACTION_UPDATE),
        event=event,
        model_name=model_name,
        object_id=object_id,
        old_values=new_values.pop('old_values', None),
        new_values=new_values,
    )
