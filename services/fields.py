from datetime import date, datetime

from services.errors import ValidationError


def parse_int(value, field: str, required: bool = True):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", field=field)


def parse_date(value, field: str, required: bool = True):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid {field}. Use YYYY-MM-DD", field=field)


def parse_text(value, field: str, required: bool = False, max_length: int = None):
    text = (value or "").strip() if isinstance(value, str) or value is None else None
    if text is None:
        raise ValidationError(f"{field} must be a string", field=field)
    if required and not text:
        raise ValidationError(f"{field} is required", field=field)
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field=field)
    return text
