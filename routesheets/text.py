"""
Free text normalization used to match municipality names, fault categories
and error messages against fixed vocabularies.
"""

import re
import unicodedata
from typing import Any


_DIGITS = re.compile(r"(\d+)")


def normalize_string(value: Any) -> str:
    """
    Trim, lower-case and strip diacritics ("Cañelones " -> "canelones").
    Empty or missing input yields an empty string.
    """
    if value is None:
        return ""
    text = str(value).strip().lower()
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def zone_key(value: Any) -> str:
    """
    Key used to compare zone names ("zona b1 " -> "ZONA B1").
    """
    if value is None:
        return ""
    return str(value).upper().strip()


def natural_sort_key(value: str) -> tuple:
    """
    Sort key that compares embedded numbers numerically and ignores case and
    accents, so "Parte 2" sorts before "Parte 10".
    """
    parts = _DIGITS.split(normalize_string(value))
    key = []
    for p in parts:
        if not p:
            continue
        if p.isdigit():
            key.append((0, int(p), ""))
        else:
            key.append((1, 0, p))
    return tuple(key)
