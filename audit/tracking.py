"""
Model change tracking.

`track_model()` wires pre_save/post_save/post_delete receivers for a model so
that creates, updates and deletes are written to the audit log once the
surrounding transaction commits.
"""
import json
import logging
import threading
from contextlib import contextmanager

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.db.models.signals import post_delete, post_save, pre_save

from audit.helpers import get_request_metadata
from audit.models import AuditEvent, AuditLog

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = (
    'password',
    'password_confirmation',
    'remember_token',
    'api_token',
    'secret',
    'token',
    'last_login',
)

_state = threading.local()
_tracked = {}


def is_logging_enabled():
    return getattr(_state, 'enabled', True)


@contextmanager
def without_logging():
    """Suppress model tracking inside the block"""
    previous = is_logging_enabled()
    _state.enabled = False
    try:
        yield
    finally:
        _state.enabled = previous


def get_tracked_models():
    return list(_tracked)


def track_model(model, exclude=(), tags=None):
    """
    Audit creates, updates and deletes of model.

    Args:
        model: Model class
        exclude: Extra field names never written to the log
        tags: Tags added to every entry; instances may add more via audit_tags()
    """
    _tracked[model] = {
        'exclude': set(SENSITIVE_FIELDS) | set(exclude),
        'tags': list(tags or []),
    }
    uid = f"audit_tracking_{model._meta.label_lower}"
    pre_save.connect(_remember_original, sender=model, dispatch_uid=f"{uid}_pre_save")
    post_save.connect(_log_save, sender=model, dispatch_uid=f"{uid}_post_save")
    post_delete.connect(_log_delete, sender=model, dispatch_uid=f"{uid}_post_delete")
    return model


def get_excluded_fields(model):
    """Fields never written to the log for model"""
    options = _tracked.get(model)
    return set(options['exclude']) if options else set(SENSITIVE_FIELDS)


def snapshot(instance, exclude=()):
    """JSON-safe {attname: value} of the concrete fields of instance"""
    values = {}
    for field in instance._meta.concrete_fields:
        if field.name in exclude or field.attname in exclude:
            continue
        values[field.attname] = field.value_from_object(instance)
    return json.loads(json.dumps(values, cls=DjangoJSONEncoder))


def _entry_tags(instance, options):
    tags = list(options['tags'])
    audit_tags = getattr(instance, 'audit_tags', None)
    if callable(audit_tags):
        for tag in audit_tags():
            if tag not in tags:
                tags.append(tag)
    return tags


def _remember_original(sender, instance, raw=False, **kwargs):
    if raw or not is_logging_enabled() or instance._state.adding or instance.pk is None:
        return
    options = _tracked[sender]
    original = sender._default_manager.filter(pk=instance.pk).first()
    instance._audit_original = snapshot(original, options['exclude']) if original is not None else None


def _log_save(sender, instance, created, raw=False, **kwargs):
    if raw or not is_logging_enabled():
        return
    options = _tracked[sender]
    current = snapshot(instance, options['exclude'])

    if created:
        _queue(AuditEvent.CREATED, instance, None, current, _entry_tags(instance, options))
        return

    original = instance.__dict__.pop('_audit_original', None)
    if original is None:
        return

    new_values = {key: value for key, value in current.items() if original.get(key) != value}
    if not new_values:
        return
    old_values = {key: original.get(key) for key in new_values}
    _queue(AuditEvent.UPDATED, instance, old_values, new_values, _entry_tags(instance, options))


def _log_delete(sender, instance, **kwargs):
    if not is_logging_enabled():
        return
    options = _tracked[sender]
    old_values = snapshot(instance, options['exclude'])
    _queue(AuditEvent.DELETED, instance, old_values, None, _entry_tags(instance, options))


def _queue(event, instance, old_values, new_values, tags):
    """Capture the subject and request now, write after commit"""
    entry = {
        'event': event,
        'auditable_type': instance._meta.label_lower,
        'auditable_id': str(instance.pk) if instance.pk is not None else None,
        'old_values': old_values,
        'new_values': new_values,
        'tags': tags,
        **get_request_metadata(),
    }
    transaction.on_commit(lambda: write_entry(entry))


def write_entry(entry):
    try:
        AuditLog.objects.create(**entry)
    except Exception as e:
        logger.error(
            f"AuditLog: failed to create audit log entry | Context: "
            f"{{'event': '{entry.get('event')}', 'auditable_type': '{entry.get('auditable_type')}', "
            f"'auditable_id': '{entry.get('auditable_id')}'}}: {e}",
            exc_info=True
        )
