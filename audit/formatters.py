"""
Audit log change formatters.

Turn the old/new value maps of an audit entry into human readable lines.
`get_formatter(event)` picks the formatter for an event.
"""
import json
import re
from datetime import date, datetime

from django.utils.dateparse import parse_date, parse_datetime

from audit.models import AuditEvent

DATE_FORMAT = '%B %-d, %Y at %-I:%M %p'
MAX_VALUE_LENGTH = 100
FILE_SIZE_UNITS = ['B', 'KB', 'MB', 'GB', 'TB']


def format_field_name(key):
    return re.sub(r'[_-]', ' ', str(key)).title()


def format_file_size(size):
    value = float(max(int(size or 0), 0))
    power = 0
    while value >= 1024 and power < len(FILE_SIZE_UNITS) - 1:
        value /= 1024
        power += 1
    value = round(value, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {FILE_SIZE_UNITS[power]}"


def parse_date_string(value):
    """Return a datetime for date-like strings, None otherwise"""
    if not isinstance(value, str) or not (8 <= len(value) <= 50) or not re.search(r'\d{4}', value):
        return None
    try:
        parsed = parse_datetime(value)
        if parsed is None:
            parsed_date = parse_date(value)
            if parsed_date is not None:
                parsed = datetime(parsed_date.year, parsed_date.month, parsed_date.day)
    except ValueError:
        return None
    if parsed is None or not 1000 <= parsed.year <= 9999:
        return None
    return parsed


def format_date(value):
    if isinstance(value, datetime):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day).strftime(DATE_FORMAT)
    parsed = parse_date_string(value)
    return parsed.strftime(DATE_FORMAT) if parsed else None


def format_value(value):
    """Display form of a logged value, None stays None"""
    if value is None:
        return None
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (datetime, date)):
        return format_date(value)

    text = str(value)
    formatted_date = format_date(text)
    if formatted_date:
        return formatted_date
    if len(text) > MAX_VALUE_LENGTH:
        return f"{text[:MAX_VALUE_LENGTH]}..."
    return f"'{text}'"


def ensure_dict(value):
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


class AuditLogFormatter:
    """Base formatter: format(old_values, new_values, event) -> list of lines"""

    def format(self, old_values, new_values, event=None):
        raise NotImplementedError

    @staticmethod
    def _with_time(changes, label, value):
        formatted = format_date(value) if value else None
        if formatted:
            changes.append(f"{label}: {formatted}")
        return changes


class AuthenticationEventFormatter(AuditLogFormatter):
    """registered, login, logout, failed_login and password events"""

    def format(self, old_values, new_values, event=None):
        old_values, new_values = ensure_dict(old_values), ensure_dict(new_values)
        email = new_values.get('email') or old_values.get('email')

        if event == AuditEvent.REGISTERED:
            name = new_values.get('name')
            if email and name:
                return [f"User {name} ({email}) registered"]
            if email or name:
                return [f"User {email or name} registered"]
            return ['New user registered']

        if event == AuditEvent.LOGIN:
            changes = [f"User {email} logged in" if email else 'User logged in']
            return self._with_time(changes, 'Login time', new_values.get('logged_in_at'))

        if event == AuditEvent.LOGOUT:
            changes = [f"User {email} logged out" if email else 'User logged out']
            return self._with_time(changes, 'Logout time', old_values.get('logged_out_at'))

        if event == AuditEvent.FAILED_LOGIN:
            username = new_values.get('username')
            return [f"Failed login attempt for {username}" if username else 'Failed login attempt']

        if event == AuditEvent.PASSWORD_RESET:
            changes = [f"Password reset for user {email}" if email else 'Password reset']
            return self._with_time(changes, 'Reset time', new_values.get('reset_at'))

        if event == AuditEvent.PASSWORD_CHANGED:
            changes = [f"Password changed for user {email}" if email else 'Password changed']
            return self._with_time(changes, 'Change time', new_values.get('changed_at'))

        if event == AuditEvent.PASSWORD_RESET_REQUESTED:
            changes = [f"Password reset requested for {email}" if email else 'Password reset requested']
            return self._with_time(changes, 'Request time', new_values.get('requested_at'))

        return []


class UserEventFormatter(AuditLogFormatter):
    """email_verified, email_changed and account_deleted"""

    def format(self, old_values, new_values, event=None):
        old_values, new_values = ensure_dict(old_values), ensure_dict(new_values)

        if event == AuditEvent.EMAIL_VERIFIED:
            email = new_values.get('email')
            changes = [f"Email {email} verified" if email else 'Email verified']
            return self._with_time(changes, 'Verification time', new_values.get('verified_at'))

        if event == AuditEvent.EMAIL_CHANGED:
            old_email, new_email = old_values.get('email'), new_values.get('email')
            if old_email and new_email:
                changes = [f"Email changed from {old_email} to {new_email}"]
            elif new_email:
                changes = [f"Email set to {new_email}"]
            elif old_email:
                changes = [f"Email {old_email} removed"]
            else:
                changes = ['Email changed']
            return self._with_time(changes, 'Change time', new_values.get('changed_at'))

        if event == AuditEvent.ACCOUNT_DELETED:
            email, name = old_values.get('email'), old_values.get('name')
            if email and name:
                changes = [f"Account deleted for user {name} ({email})"]
            elif email or name:
                changes = [f"Account deleted for user {email or name}"]
            else:
                changes = ['Account deleted']
            return self._with_time(changes, 'Deletion time', old_values.get('deleted_at'))

        return []


class FileEventFormatter(AuditLogFormatter):
    """file_uploaded and file_deleted"""

    def format(self, old_values, new_values, event=None):
        if event == AuditEvent.FILE_UPLOADED:
            values = ensure_dict(new_values)
            filename = values.get('filename')
            if filename:
                kind = 'temporary' if values.get('is_temporary') else 'permanent'
                changes = [f"File '{filename}' uploaded ({kind})"]
            else:
                changes = ['File uploaded']
            time_label, time_value = 'Uploaded at', values.get('created_at')
        elif event == AuditEvent.FILE_DELETED:
            values = ensure_dict(old_values)
            filename = values.get('filename')
            changes = [f"File '{filename}' deleted" if filename else 'File deleted']
            time_label, time_value = 'Deleted at', values.get('deleted_at')
        else:
            return []

        if values.get('mime_type'):
            changes.append(f"MIME type: {values['mime_type']}")
        if values.get('size') is not None:
            changes.append(f"Size: {format_file_size(values['size'])}")
        return self._with_time(changes, time_label, time_value)


class RelationshipEventFormatter(AuditLogFormatter):
    """
    relationship_synced

    Each relation is stored as an {id: name} map, optionally with a
    `<relation>_ids` list when names are not available.
    """

    def format(self, old_values, new_values, event=None):
        old_values, new_values = ensure_dict(old_values), ensure_dict(new_values)
        changes = []

        for relation in new_values:
            if relation.endswith('_ids'):
                continue
            old_names = self._names(old_values.get(relation))
            new_names = self._names(new_values.get(relation))
            old_ids = self._ids(old_values, relation, old_names)
            new_ids = self._ids(new_values, relation, new_names)
            if old_ids == new_ids:
                continue

            display_name = format_field_name(relation)
            added = [item for item in new_ids if item not in old_ids]
            removed = [item for item in old_ids if item not in new_ids]

            if added:
                names = [new_names[item] for item in added if item in new_names]
                changes.append(f"Added {display_name}: " + (', '.join(names) if names else f"{len(added)} item(s)"))
            if removed:
                names = [old_names[item] for item in removed if item in old_names]
                changes.append(f"Removed {display_name}: " + (', '.join(names) if names else f"{len(removed)} item(s)"))

        return changes or ['Relationship synchronized']

    @staticmethod
    def _names(value):
        if isinstance(value, dict):
            return {str(key): name for key, name in value.items()}
        return {}

    @staticmethod
    def _ids(values, relation, names):
        ids = values.get(f"{relation}_ids")
        if isinstance(ids, list):
            return [str(item) for item in ids]
        return list(names)


class GenericEventFormatter(AuditLogFormatter):
    """created, updated, deleted, export and anything unknown"""

    def format(self, old_values, new_values, event=None):
        old_values, new_values = ensure_dict(old_values), ensure_dict(new_values)

        if event == AuditEvent.EXPORT:
            return self._format_export(new_values)
        if not old_values and new_values:
            return self._format_values('Added', new_values)
        if old_values and not new_values:
            return self._format_values('Removed', old_values)
        if old_values and new_values:
            return self._format_updated(old_values, new_values)
        return []

    @staticmethod
    def _format_values(verb, values):
        changes = []
        for key, value in values.items():
            formatted = format_value(value)
            field_name = format_field_name(key)
            changes.append(f"{verb} {field_name}: {formatted}" if formatted is not None else f"{verb} {field_name}")
        return changes

    @staticmethod
    def _format_updated(old_values, new_values):
        changes = []
        keys = list(dict.fromkeys([*old_values, *new_values]))
        for key in keys:
            old, new = old_values.get(key), new_values.get(key)
            if old == new:
                continue
            field_name = format_field_name(key)
            old_formatted, new_formatted = format_value(old), format_value(new)
            if old_formatted is None and new_formatted is not None:
                changes.append(f"Set {field_name} to {new_formatted}")
            elif old_formatted is not None and new_formatted is None:
                changes.append(f"Removed {field_name} (was {old_formatted})")
            else:
                changes.append(f"Changed {field_name} from {old_formatted} to {new_formatted}")
        return changes

    def _format_export(self, values):
        changes = [f"Exported audit logs as {values.get('format', 'CSV')}"]
        count = values.get('record_count')
        if count is not None:
            changes.append(f"Exported {count} record{'' if count == 1 else 's'}")
        return self._with_time(changes, 'Export time', values.get('exported_at'))


AUTHENTICATION_EVENTS = {
    AuditEvent.REGISTERED,
    AuditEvent.LOGIN,
    AuditEvent.LOGOUT,
    AuditEvent.FAILED_LOGIN,
    AuditEvent.PASSWORD_RESET,
    AuditEvent.PASSWORD_CHANGED,
    AuditEvent.PASSWORD_RESET_REQUESTED,
}
USER_EVENTS = {AuditEvent.EMAIL_VERIFIED, AuditEvent.EMAIL_CHANGED, AuditEvent.ACCOUNT_DELETED}
FILE_EVENTS = {AuditEvent.FILE_UPLOADED, AuditEvent.FILE_DELETED}


def get_formatter(event):
    if event in AUTHENTICATION_EVENTS:
        return AuthenticationEventFormatter()
    if event in USER_EVENTS:
        return UserEventFormatter()
    if event in FILE_EVENTS:
        return FileEventFormatter()
    if event == AuditEvent.RELATIONSHIP_SYNCED:
        return RelationshipEventFormatter()
    return GenericEventFormatter()


def format_changes(audit_log):
    return get_formatter(audit_log.event).format(audit_log.old_values, audit_log.new_values, audit_log.event)
