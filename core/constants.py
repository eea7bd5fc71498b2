"""
Application-wide constants.
Centralized constants shared by every module.
"""

# Roles (backed by django.contrib.auth Group names)
class Roles:
    SUPER_ADMIN = 'Super Admin'
    ADMINISTRATOR = 'Administrator'
    MANAGER = 'Manager'
    STAFF = 'Staff'
    AUDITOR = 'Auditor'
    GUEST = 'Guest'

    ALL = [SUPER_ADMIN, ADMINISTRATOR, MANAGER, STAFF, AUDITOR, GUEST]

    CHOICES = [(role, role) for role in ALL]


# Setting value types
class SettingType:
    TEXT = 'text'
    BOOLEAN = 'boolean'
    INTEGER = 'integer'
    FILE = 'file'
    TEXTAREA = 'textarea'

    CHOICES = [
        (TEXT, 'Text'),
        (BOOLEAN, 'Boolean'),
        (INTEGER, 'Integer'),
        (FILE, 'File'),
        (TEXTAREA, 'Textarea'),
    ]


# Signal notification types
class NotificationType:
    INFO = 'info'
    SUCCESS = 'success'
    WARNING = 'warning'
    ERROR = 'error'

    CHOICES = [
        (INFO, 'Info'),
        (SUCCESS, 'Success'),
        (WARNING, 'Warning'),
        (ERROR, 'Error'),
    ]


# Vault item types
class VaultType:
    LOGIN = 'login'
    CARD = 'card'
    NOTE = 'note'
    SERVER = 'server'

    CHOICES = [
        (LOGIN, 'Login'),
        (CARD, 'Card'),
        (NOTE, 'Note'),
        (SERVER, 'Server'),
    ]


# Dashboard widget types
class WidgetType:
    STAT = 'stat'
    CHART = 'chart'
    ACTIVITY = 'activity'
    SYSTEM = 'system'

    ALL = [STAT, CHART, ACTIVITY, SYSTEM]


# Dashboard widget placement
class WidgetScope:
    OVERVIEW = 'overview'
    DETAIL = 'detail'
    BOTH = 'both'

    ALL = [OVERVIEW, DETAIL, BOTH]


# Menu groups that sort ahead of the alphabetical remainder
MENU_PRIORITY_GROUPS = ['Main', 'Dashboard']

# Datatable defaults
DEFAULT_PER_PAGE_OPTIONS = (10, 20, 30, 50)
DEFAULT_PER_PAGE = 10
