import re
import unicodedata

_WS_RE = re.compile(r"\s+")
_DASH_RE = re.compile(r"[‐‑–—]")


def strip_diacritics(s: str) -> str:
    decomposed = unicodedata.normalize("NFD", s)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_for_match(raw) -> str:
    """Case/diacritics/spacing insensitive key used to compare names and titles."""
    if not raw:
        return ""
    s = _WS_RE.sub(" ", str(raw).strip()).lower()
    s = strip_diacritics(s)
    return _DASH_RE.sub("-", s)


def normalize_simple(raw) -> str:
    return strip_diacritics(str(raw or "").lower())
