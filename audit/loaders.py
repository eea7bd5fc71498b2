"""
Batched loading of audited records.
"""
import logging
from collections import defaultdict

from django.apps import apps
from django.core.exceptions import ValidationError as DjangoValidationError

logger = logging.getLogger(__name__)


def resolve_model(auditable_type):
    """Model class for an `app_label.model` label, or None"""
    if not auditable_type or '.' not in auditable_type:
        return None
    try:
        return apps.get_model(auditable_type)
    except (LookupError, ValueError):
        return None


def load_auditables(audit_logs):
    """
    Attach the audited record to each log as `log.auditable`.

    Logs are grouped by type and each type is fetched with a single
    in_bulk() query. Missing records, unknown types and lookup errors
    leave `auditable` as None.
    """
    grouped = defaultdict(lambda: defaultdict(list))
    models = {}

    for log in audit_logs:
        log.auditable = None
        if not log.auditable_type or log.auditable_id is None:
            continue
        if log.auditable_type not in models:
            models[log.auditable_type] = resolve_model(log.auditable_type)
        if models[log.auditable_type] is None:
            continue
        grouped[log.auditable_type][log.auditable_id].append(log)

    for auditable_type, logs_by_id in grouped.items():
        model = models[auditable_type]
        pk_field = model._meta.pk
        ids = {}
        for raw_id in logs_by_id:
            try:
                ids[pk_field.to_python(raw_id)] = raw_id
            except DjangoValidationError:
                continue
        try:
            records = model._default_manager.in_bulk(list(ids))
        except Exception as e:
            logger.warning(f"AuditLog: failed to load auditables | Context: {{'type': '{auditable_type}'}}: {e}")
            continue
        for pk, record in records.items():
            for log in logs_by_id[ids[pk]]:
                log.auditable = record

    return audit_logs
