"""Field normalizers used before any comparison"""

import re
from typing import Any

_PHONE_NOISE = re.compile(r"[\s\-()+.]")
_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_phone(value: Any) -> str:
    """Strip whitespace, hyphens, parentheses, plus signs and periods"""
    if not value:
        return ""
    return _PHONE_NOISE.sub("", str(value))


def normalize_address(value: Any) -> str:
    """Lower-case, trim and collapse internal whitespace runs"""
    if not value:
        return ""
    return _WHITESPACE_RUN.sub(" ", str(value).lower().strip())
