from __future__ import annotations

from security.request_context import MissingHeader, get_header, require_header

AUTHORIZATION_HEADER = "authorization"


def require_authorization() -> str:
    """
    Return the inbound Authorization header value for the active request.

    The value is forwarded to upstream services verbatim; no scheme parsing or token verification
    happens here. Raises MissingHeader when the header is absent, empty, or no request scope is
    bound; an empty credential is never forwarded.
    """
    value = require_header(AUTHORIZATION_HEADER)
    if not value.strip():
        raise MissingHeader(AUTHORIZATION_HEADER)
    return value


def credential_scheme() -> str:
    """
    Describe the active credential for logs without revealing it: the scheme name, 'none' when
    no Authorization header is bound, or 'opaque' for a value without a scheme.
    """
    auth = get_header(AUTHORIZATION_HEADER)
    if not auth:
        return "none"
    parts = auth.split(None, 1)
    if len(parts) == 2:
        return parts[0].lower()
    return "opaque"
