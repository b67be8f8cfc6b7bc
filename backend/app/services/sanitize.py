"""
Sanitization Service

Plain-text cleanup for user supplied names, notes and file names before
they are stored or used as storage keys.
"""
import html
import re
import unicodedata
from typing import Optional

MAX_FILE_NAME_LENGTH = 255

_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_DANGEROUS_PATTERNS = [
    re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]*)", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"data\s*:\s*text/html", re.IGNORECASE),
    re.compile(r"vbscript\s*:", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
]


def sanitize_text(value: Optional[str]) -> str:
    """Strip all markup from ``value`` and normalize whitespace."""
    if not value:
        return ""

    # Decode entities first so encoded tags are stripped too
    result = html.unescape(value)
    # Script blocks go before tags so their bodies do not survive as text
    for pattern in _DANGEROUS_PATTERNS:
        result = pattern.sub("", result)
    result = _TAG_PATTERN.sub(" ", result)
    return _WHITESPACE_PATTERN.sub(" ", result).strip()


def sanitize_file_name(name: Optional[str]) -> str:
    """
    Make ``name`` safe to use as part of a storage key.

    Path components are dropped, accents are folded to ASCII and anything
    outside letters, digits, dot, dash and underscore becomes an underscore.
    The extension is kept when the name has to be truncated.
    """
    if not name:
        return "file"

    name = name.replace("\\", "/").split("/")[-1]
    name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name)
    name = re.sub(r"_{2,}", "_", name)
    name = re.sub(r"\.{2,}", ".", name).strip("._")
    if not name:
        return "file"

    if len(name) > MAX_FILE_NAME_LENGTH:
        stem, dot, ext = name.rpartition(".")
        if dot and len(ext) < 16:
            name = stem[: MAX_FILE_NAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            name = name[:MAX_FILE_NAME_LENGTH]
    return name
