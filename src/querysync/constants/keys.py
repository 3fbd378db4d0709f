"""Query key encoding constants."""

from __future__ import annotations

UNDEFINED_ARGS_FINGERPRINT: str = "undefined"
KEY_NAMESPACE: str = "querysync"
FINGERPRINT_SEPARATORS: tuple[str, str] = (",", ":")
