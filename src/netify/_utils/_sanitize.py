"""Redaction helpers for anything that ends up in log output."""

from typing import Mapping

SENSITIVE_HEADERS = frozenset(
    {"authorization", "proxy-authorization", "cookie", "set-cookie", "x-api-key"}
)


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` safe to log.

    Credential-bearing values are replaced by ``***``; the auth scheme of an
    ``Authorization`` header is kept so logs still show what kind of
    credential was attached.

    Examples:
        >>> redact_headers({"Authorization": "Bearer abc", "Accept": "*/*"})
        {'Authorization': 'Bearer ***', 'Accept': '*/*'}
    """
    redacted: dict[str, str] = {}
    for name, value in headers.items():
        if name.lower() not in SENSITIVE_HEADERS:
            redacted[name] = value
            continue
        scheme, _, credential = value.partition(" ")
        if name.lower() == "authorization" and credential:
            redacted[name] = f"{scheme} ***"
        else:
            redacted[name] = "***"
    return redacted
