from typing import Sequence

from httpx import URL


def join_url(base_url: str, path: str) -> str:
    """Append ``path`` to ``base_url``.

    Absolute ``http(s)`` paths are returned as they are, which lets a single
    request escape the configured base address (pre-signed upload URLs and
    the like).
    """
    if path.startswith(("http://", "https://")):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def with_query(url: str, query_params: Sequence[tuple[str, str]]) -> str:
    """Append ordered query parameters to ``url``, keeping duplicates."""
    if not query_params:
        return url
    merged = URL(url)
    params = list(merged.params.multi_items()) + list(query_params)
    return str(merged.copy_with(params=params))
