import re
import unicodedata

_whitespace = re.compile(r"\s+")
_unsafe = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_filename(name: str) -> str:
    """Make an uploaded file name safe to use as a storage object key.

    >>> sanitize_filename("café résumé.pdf")
    'cafe_resume.pdf'
    """
    normalized = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return _unsafe.sub("", _whitespace.sub("_", stripped))
