"""Request URLs, methods and response envelopes for the model API."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from querysync.constants.transport import DATA_ENVELOPE_KEY, OPERATION_METHODS, QUERY_PARAM
from querysync.exceptions import PayloadError
from querysync.keys.codec import fingerprint


def method_for(operation: str) -> str:
    """HTTP method used for a model operation."""
    try:
        return OPERATION_METHODS[operation]
    except KeyError:
        raise PayloadError(f"Unsupported model operation '{operation}'") from None


def make_url(endpoint: str, model: str, operation: str, args: Any = None) -> str:
    """Build ``{endpoint}/{model}/{operation}``, with ``args`` as JSON in ``?q=`` when given."""
    url = f"{endpoint.rstrip('/')}/{model}/{operation}"
    if args is None:
        return url
    return f"{url}?{QUERY_PARAM}={quote(fingerprint(args), safe='')}"


def unwrap_envelope(body: Any) -> Any:
    """Return the ``data`` member of a response envelope.

    Bodies that are not envelopes are returned as they are.
    """
    if isinstance(body, dict) and DATA_ENVELOPE_KEY in body:
        return body[DATA_ENVELOPE_KEY]
    return body
