# solace_vault/sanitize.py

import re

# Script/markup injection patterns stripped from free text
_DANGEROUS_PATTERNS = [
    re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"(javascript|vbscript|data):", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"<(iframe|object|embed|form|input|meta|link|style)[^>]*>", re.IGNORECASE),
]

_WHITESPACE = re.compile(r"\s+")
_EDGE_CHARS = re.compile(r"^[<>&\"']+|[<>&\"']+$")

DEFAULT_MAX_LENGTH = 10000


def sanitize_text(value, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """
    Normalise untrusted text: drop null bytes, collapse whitespace, strip
    script/markup patterns, truncate to ``max_length`` and trim dangerous
    leading/trailing characters. Non-strings yield an empty string.
    """
    if not value or not isinstance(value, str):
        return ""

    sanitized = value.replace("\0", "")
    sanitized = _WHITESPACE.sub(" ", sanitized).strip()
    for pattern in _DANGEROUS_PATTERNS:
        sanitized = pattern.sub("", sanitized)
    sanitized = sanitized[:max_length]
    return _EDGE_CHARS.sub("", sanitized)
