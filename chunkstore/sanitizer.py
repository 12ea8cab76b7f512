import re

from chunkstore.errors import ValidationError


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9\-_.]")
# Survive sanitization but cannot name a file inside the upload directory
_RESERVED_SEGMENTS = frozenset({".", ".."})


def sanitize_filename(value: str) -> str:
    """Strip every character outside ``[A-Za-z0-9-_.]``.

    Characters are removed, not replaced, so the function is idempotent and the
    result is always usable as a single path segment or stored identifier.
    """
    return _UNSAFE_CHARS.sub("", value or "")


def require_identifier(value: str | None, field: str) -> str:
    """Sanitize an externally supplied identifier and reject it when empty."""
    if value is None or not value.strip():
        raise ValidationError(f"Parameter '{field}' must not be empty.")
    cleaned = sanitize_filename(value)
    if not cleaned:
        raise ValidationError(f"Parameter '{field}' contains no usable characters.")
    if cleaned in _RESERVED_SEGMENTS:
        raise ValidationError(f"Parameter '{field}' must not be '{cleaned}'.")
    return cleaned
