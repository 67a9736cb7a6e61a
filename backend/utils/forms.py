from mess.errors import ValidationError

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off", "")


def as_bool(value, field="value", default=False):
    """
    Reads a flag from JSON or a query string.

    Strings are matched case-insensitively, so "false" and "0" are False;
    anything unrecognised raises ValidationError.
    """
    if value is None:
        return default
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False
        raise ValidationError(f"{field} must be true or false")
    return bool(value)
