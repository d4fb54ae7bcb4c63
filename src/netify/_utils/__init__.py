from ._auth import parse_access_token, token_expiry
from ._logs import setup_logging
from ._sanitize import redact_headers
from ._ssl_context import get_httpx_client_kwargs
from ._url import join_url, with_query

__all__ = [
    "get_httpx_client_kwargs",
    "join_url",
    "parse_access_token",
    "redact_headers",
    "setup_logging",
    "token_expiry",
    "with_query",
]
