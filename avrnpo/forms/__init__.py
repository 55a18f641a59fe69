"""
Shared field filters for site forms.
"""

import re

_CONTROL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def clean_text(value):
    """Trim and drop control characters (newlines and tabs are kept)."""
    if value is None or not isinstance(value, str):
        return value
    return _CONTROL.sub("", value).strip()


def lower_email(value):
    value = clean_text(value)
    return value.lower() if isinstance(value, str) else value
