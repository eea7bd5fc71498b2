"""
Validation utilities and validators.
Centralized validation logic following single responsibility principle.
"""
import re
from typing import Optional

from django.contrib.auth import get_user_model
from core.constants import SettingType
from core.exceptions import ValidationError as AppValidationError

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')

BOOLEAN_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
BOOLEAN_FALSE_VALUES = {'0', 'false', 'no', 'off', ''}


class UserValidator:
    """Validates user account data"""

    @staticmethod
    def validate_unique_username(username: str, exclude_id: Optional[int] = None):
        """Validate that a username is present and not taken"""
        if not username or not username.strip():
            raise AppValidationError(
                message="Username is required",
                code="USERNAME_REQUIRED",
                details={"field": "username"}
            )
        queryset = get_user_model().objects.filter(username__iexact=username)
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if queryset.exists():
            raise AppValidationError(
                message=f"The username '{username}' has already been taken.",
                code="USERNAME_TAKEN",
                details={"field": "username"}
            )

    @staticmethod
    def validate_unique_email(email: str, exclude_id: Optional[int] = None):
        """Validate that an email is present and not taken"""
        if not email or '@' not in email:
            raise AppValidationError(
                message="A valid email address is required",
                code="INVALID_EMAIL",
                details={"field": "email"}
            )
        queryset = get_user_model().objects.filter(email__iexact=email)
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if queryset.exists():
            raise AppValidationError(
                message=f"The email '{email}' has already been taken.",
                code="EMAIL_TAKEN",
                details={"field": "email"}
            )

    @staticmethod
    def validate_password(password: str, min_length: int = 8):
        """Validate password length"""
        if not password or len(password) < min_length:
            raise AppValidationError(
                message=f"The password must be at least {min_length} characters.",
                code="PASSWORD_TOO_SHORT",
                details={"field": "password", "min": min_length}
            )


class PinValidator:
    """Validates vault PINs"""

    MIN_LENGTH = 4
    MAX_LENGTH = 20

    @staticmethod
    def validate_pin(pin, confirmation=None, require_confirmation=False):
        """Validate PIN length and, optionally, its confirmation"""
        if not isinstance(pin, str) or not pin:
            raise AppValidationError(
                message="The PIN field is required.",
                code="PIN_REQUIRED",
                details={"field": "pin"}
            )
        if len(pin) < PinValidator.MIN_LENGTH or len(pin) > PinValidator.MAX_LENGTH:
            raise AppValidationError(
                message=f"The PIN must be between {PinValidator.MIN_LENGTH} and {PinValidator.MAX_LENGTH} characters.",
                code="INVALID_PIN_LENGTH",
                details={"field": "pin", "min": PinValidator.MIN_LENGTH, "max": PinValidator.MAX_LENGTH}
            )
        if require_confirmation and pin != confirmation:
            raise AppValidationError(
                message="The PIN confirmation does not match.",
                code="PIN_CONFIRMATION_MISMATCH",
                details={"field": "pin_confirmation"}
            )


class PasswordGeneratorValidator:
    """Validates password generator options"""

    MIN_LENGTH = 8
    MAX_LENGTH = 128

    @staticmethod
    def validate_options(length: int, uppercase: bool, lowercase: bool, numbers: bool, symbols: bool):
        """Validate requested length and character sets"""
        if length < PasswordGeneratorValidator.MIN_LENGTH or length > PasswordGeneratorValidator.MAX_LENGTH:
            raise AppValidationError(
                message=f"Password length must be between {PasswordGeneratorValidator.MIN_LENGTH} and {PasswordGeneratorValidator.MAX_LENGTH}.",
                code="INVALID_PASSWORD_LENGTH",
                details={"field": "length", "min": PasswordGeneratorValidator.MIN_LENGTH, "max": PasswordGeneratorValidator.MAX_LENGTH}
            )
        if not any([uppercase, lowercase, numbers, symbols]):
            raise AppValidationError(
                message="At least one character set must be selected.",
                code="NO_CHARACTER_SET",
                details={"field": "uppercase"}
            )


class SettingValueValidator:
    """Validates raw setting values against their declared type"""

    @staticmethod
    def validate(key: str, setting_type: str, value):
        """Validate and normalize a value to its stored string form"""
        if setting_type == SettingType.INTEGER:
            try:
                return str(int(str(value).strip()))
            except (TypeError, ValueError):
                raise AppValidationError(
                    message=f"The {key} setting must be an integer.",
                    code="INVALID_INTEGER",
                    details={"field": key}
                )
        if setting_type == SettingType.BOOLEAN:
            if isinstance(value, bool):
                return '1' if value else '0'
            normalized = str(value).strip().lower()
            if normalized in BOOLEAN_TRUE_VALUES:
                return '1'
            if normalized in BOOLEAN_FALSE_VALUES:
                return '0'
            raise AppValidationError(
                message=f"The {key} setting must be a boolean.",
                code="INVALID_BOOLEAN",
                details={"field": key}
            )
        return '' if value is None else str(value)


class ScheduleValidator:
    """Validates schedule expressions"""

    @staticmethod
    def parse_time(value: str):
        """Parse an HH:MM string into (hour, minute)"""
        match = TIME_PATTERN.match(str(value or '').strip())
        if not match:
            raise AppValidationError(
                message=f"Invalid schedule time '{value}'. Expected HH:MM.",
                code="INVALID_SCHEDULE_TIME",
                details={"value": value}
            )
        return int(match.group(1)), int(match.group(2))


class RangeValidator:
    """Validates numeric command options"""

    @staticmethod
    def validate_range(name: str, value: int, minimum: int, maximum: int):
        """Validate that value falls inside [minimum, maximum]"""
        if value < minimum or value > maximum:
            raise AppValidationError(
                message=f"{name} must be between {minimum} and {maximum}.",
                code="OUT_OF_RANGE",
                details={"field": name, "min": minimum, "max": maximum, "value": value}
            )
