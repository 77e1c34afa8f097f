"""
Input Validation & Parsing Utilities
Validation for API request bodies and query parameters.

Two styles live here:
- validate_* functions return (is_valid, error_message) tuples
- parse_* functions return the parsed value or raise ValidationError
"""
import math
import re
from datetime import datetime, date, time, timezone
from typing import Dict, Any, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

# Regex patterns
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PHONE_PATTERN = re.compile(r'^\+?1?\d{9,15}$')
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$')
NON_DIGITS = re.compile(r'\D')


class ValidationError(Exception):
    """Raised by the parse_* helpers; handlers turn it into a 400"""
    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate that all required fields are present in the data

    Args:
        data: Dictionary of input data
        required_fields: List of required field names

    Returns:
        Tuple of (is_valid, error_message)
    """
    missing_fields = [
        field for field in required_fields
        if field not in data or data[field] is None or data[field] == ''
    ]

    if missing_fields:
        return False, f"Missing required fields: {', '.join(missing_fields)}"

    return True, None


def validate_email(email: str) -> Tuple[bool, Optional[str]]:
    """
    Validate email format

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email must be a non-empty string"

    if len(email) > 254:  # RFC 5321
        return False, "Email address too long"

    if not EMAIL_PATTERN.match(email):
        return False, "Invalid email format"

    return True, None


def validate_phone(phone: str) -> Tuple[bool, Optional[str]]:
    """
    Validate phone number format

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not phone or not isinstance(phone, str):
        return False, "Phone must be a non-empty string"

    cleaned_phone = re.sub(r'[\s\-\(\)\.]', '', phone)

    if not PHONE_PATTERN.match(cleaned_phone):
        return False, "Invalid phone number format"

    return True, None


def validate_string_length(value: str, min_length: int = 0, max_length: int = 1000) -> Tuple[bool, Optional[str]]:
    """
    Validate string length is within acceptable range

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, "Value must be a string"

    if len(value) < min_length:
        return False, f"Value too short (minimum {min_length} characters)"

    if len(value) > max_length:
        return False, f"Value too long (maximum {max_length} characters)"

    return True, None


def validate_number_range(value: float, min_value: Optional[float] = None, max_value: Optional[float] = None) -> Tuple[bool, Optional[str]]:
    """
    Validate number is within acceptable range

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False, "Value must be a number"

    if min_value is not None and value < min_value:
        return False, f"Value too small (minimum {min_value})"

    if max_value is not None and value > max_value:
        return False, f"Value too large (maximum {max_value})"

    return True, None


def validate_coordinates(latitude: Any, longitude: Any) -> Tuple[bool, Optional[str]]:
    """
    Validate a latitude/longitude pair in decimal degrees

    Returns:
        Tuple of (is_valid, error_message)
    """
    is_valid, error = validate_number_range(latitude, -90, 90)
    if not is_valid:
        return False, f"Invalid latitude: {error}"

    is_valid, error = validate_number_range(longitude, -180, 180)
    if not is_valid:
        return False, f"Invalid longitude: {error}"

    return True, None


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """
    Strip null bytes and surrounding whitespace, then truncate

    Args:
        value: String to sanitize
        max_length: Maximum allowed length
    """
    if not isinstance(value, str):
        return str(value)

    sanitized = value.replace('\x00', '').strip()

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized


# ==============================================================================
# PHONE NUMBERS
# ==============================================================================

def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Reduce a phone number to its digits for matching.

    US numbers with a leading country code 1 lose it, so '+1 (555) 123-4567'
    and '555.123.4567' both become '5551234567'. Numbers of any other length
    keep all their digits.
    """
    if not phone:
        return None

    digits = NON_DIGITS.sub('', str(phone))

    if len(digits) == 11 and digits.startswith('1'):
        return digits[1:]

    return digits or None


def format_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Render a US number as (XXX) XXX-XXXX.

    Anything that does not normalize to 10 digits is returned unchanged.
    """
    digits = normalize_phone(phone)
    if digits and len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return phone


# ==============================================================================
# PARSERS
# ==============================================================================

def parse_datetime(value: Any, field: str = 'datetime') -> datetime:
    """
    Parse an ISO 8601 timestamp into naive UTC.

    Offsets (including a trailing Z) are converted to UTC. Naive input is
    taken to already be UTC.

    Raises:
        ValidationError: missing or malformed value
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not value or not isinstance(value, str):
            raise ValidationError(f"{field} is required", field)
        text = value.strip()
        if text.endswith('Z') or text.endswith('z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid {field}: expected ISO 8601 timestamp", field)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_optional_datetime(value: Any, field: str = 'datetime') -> Optional[datetime]:
    if value in (None, ''):
        return None
    return parse_datetime(value, field)


def parse_date(value: Any, field: str = 'date') -> date:
    """Parse YYYY-MM-DD. Raises ValidationError."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field} is required", field)
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise ValidationError(f"Invalid {field}: expected YYYY-MM-DD", field)


def parse_time(value: Any, field: str = 'time') -> time:
    """Parse HH:MM or HH:MM:SS (24 hour clock). Raises ValidationError."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} is required", field)

    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise ValidationError(f"Invalid {field}: expected HH:MM", field)

    hours, minutes, seconds = match.groups()
    return time(int(hours), int(minutes), int(seconds or 0))


def parse_float(value: Any, field: str) -> float:
    """Accept numbers or numeric strings (query parameters arrive as text)."""
    if isinstance(value, bool) or value is None or value == '':
        raise ValidationError(f"{field} is required", field)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field)
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number", field)
    return number


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def validate_choice(value: Any, choices, field: str) -> str:
    """Return value if it is one of choices, otherwise raise ValidationError"""
    if value not in choices:
        raise ValidationError(
            f"Invalid {field}. Must be one of: {', '.join(sorted(choices))}", field
        )
    return value


# ==============================================================================
# REQUEST VALIDATORS
# ==============================================================================

def validate_contact_request(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    """
    Validate a contact create/update body

    Args:
        data: Request data dictionary
        partial: True for PATCH, where first_name may be omitted

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not partial:
        is_valid, error = validate_required_fields(data, ['first_name'])
        if not is_valid:
            return False, error

    if 'first_name' in data:
        is_valid, error = validate_string_length(data['first_name'] or '', min_length=1, max_length=100)
        if not is_valid:
            return False, f"Invalid first_name: {error}"

    if data.get('email'):
        is_valid, error = validate_email(data['email'])
        if not is_valid:
            return False, f"Invalid email: {error}"

    if data.get('phone'):
        is_valid, error = validate_phone(data['phone'])
        if not is_valid:
            return False, f"Invalid phone: {error}"

    if data.get('latitude') is not None or data.get('longitude') is not None:
        is_valid, error = validate_coordinates(data.get('latitude'), data.get('longitude'))
        if not is_valid:
            return False, error

    return True, None

