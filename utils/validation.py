"""Input validation and sanitization utilities"""
import re
from typing import Any, Dict, List, Optional


def sanitize_string(value: Any, max_length: Optional[int] = None, allow_empty: bool = True) -> Optional[str]:
    """Strip whitespace and control characters, truncating to max_length"""
    if value is None:
        return None if allow_empty else ""

    sanitized = str(value).strip()

    # Remove null bytes and control characters (except newlines and tabs)
    sanitized = re.sub(r'[\x00-\x08\x0b-\x0c\x0e-\x1f]', '', sanitized)

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    if not sanitized and not allow_empty:
        return None
    return sanitized


def validate_email(email: str) -> bool:
    if not email:
        return False
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_url(url: str) -> bool:
    if not url:
        return False
    pattern = r'^https?://[^\s/$.?#].[^\s]*$'
    return bool(re.match(pattern, url))


def sanitize_list(value: Any, max_items: Optional[int] = None, max_length: Optional[int] = None) -> List[str]:
    """Sanitize a list of strings, dropping empty items"""
    if not value or not isinstance(value, list):
        return []

    sanitized = [sanitize_string(item, max_length=max_length) for item in value if item]
    sanitized = [item for item in sanitized if item]

    if max_items and len(sanitized) > max_items:
        sanitized = sanitized[:max_items]

    return sanitized


def validate_integer(value: Any, min_value: Optional[int] = None, max_value: Optional[int] = None) -> Optional[int]:
    """Convert to int and clamp into [min_value, max_value]; None if not numeric"""
    if value is None or isinstance(value, bool):
        return None

    try:
        int_value = int(value)
    except (ValueError, TypeError):
        return None

    if min_value is not None and int_value < min_value:
        return min_value
    if max_value is not None and int_value > max_value:
        return max_value
    return int_value


def validate_number(value: Any, min_value: Optional[float] = None, max_value: Optional[float] = None,
                    field_name: str = 'value') -> float:
    """Strict numeric check: raises ValueError instead of clamping.

    Used for scores, where a silently clamped answer would change the result.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number")

    try:
        number = float(value)
    except (ValueError, TypeError):
        raise ValueError(f"{field_name} must be a number")

    if number != number:  # NaN
        raise ValueError(f"{field_name} must be a number")
    if min_value is not None and number < min_value:
        raise ValueError(f"{field_name} must be at least {min_value:g}")
    if max_value is not None and number > max_value:
        raise ValueError(f"{field_name} must be at most {max_value:g}")
    return number


def validate_enum(value: Any, allowed_values: List[str], case_sensitive: bool = True) -> Optional[str]:
    """Return the matching allowed value, or None"""
    if not value:
        return None

    str_value = str(value).strip()

    if case_sensitive:
        return str_value if str_value in allowed_values else None

    for allowed in allowed_values:
        if allowed.lower() == str_value.lower():
            return allowed
    return None


def sanitize_json_input(data: Dict[str, Any], schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Sanitize JSON input based on schema

    Schema format:
    {
        'field_name': {
            'type': 'string' | 'int' | 'number' | 'list' | 'email' | 'url' | 'enum' | 'bool',
            'required': bool,
            'max_length': int (for strings),
            'max_items': int (for lists),
            'allowed_values': List[str] (for enum),
            'min': number, 'max': number (for int/number),
            'default': any,
            'source': str (input key when it differs from the output key)
        }
    }
    """
    data = data or {}
    sanitized = {}

    for field_name, field_schema in schema.items():
        field_type = field_schema.get('type', 'string')
        required = field_schema.get('required', False)
        source = field_schema.get('source', field_name)

        value = data.get(source, field_schema.get('default'))

        if required and (value is None or value == ''):
            raise ValueError(f"Field '{source}' is required")

        if value is None:
            continue

        if field_type == 'string':
            sanitized[field_name] = sanitize_string(value, max_length=field_schema.get('max_length'))

        elif field_type == 'int':
            int_value = validate_integer(value, min_value=field_schema.get('min'), max_value=field_schema.get('max'))
            if int_value is None:
                raise ValueError(f"Field '{source}' must be an integer")
            sanitized[field_name] = int_value

        elif field_type == 'number':
            sanitized[field_name] = validate_number(
                value, min_value=field_schema.get('min'), max_value=field_schema.get('max'), field_name=source
            )

        elif field_type == 'bool':
            sanitized[field_name] = bool(value)

        elif field_type == 'list':
            sanitized[field_name] = sanitize_list(value, max_items=field_schema.get('max_items'),
                                                  max_length=field_schema.get('max_length'))

        elif field_type == 'email':
            email = sanitize_string(value)
            if email and not validate_email(email):
                raise ValueError(f"Invalid email format for field '{source}'")
            sanitized[field_name] = email

        elif field_type == 'url':
            url = sanitize_string(value)
            if url and not validate_url(url):
                raise ValueError(f"Invalid URL format for field '{source}'")
            sanitized[field_name] = url

        elif field_type == 'enum':
            allowed_values = field_schema.get('allowed_values', [])
            enum_value = validate_enum(value, allowed_values)
            if enum_value is None:
                raise ValueError(f"Field '{source}' must be one of: {', '.join(allowed_values)}")
            sanitized[field_name] = enum_value

    return sanitized
