from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Generator, Mapping, Optional, Protocol, runtime_checkable

import httpx

from ._utils._ssl_context import get_httpx_client_kwargs
from .models.errors import (
    TransportConnectionError,
    TransportError,
    TransportProtocolError,
    TransportTimeoutError,
)


@dataclass(frozen=True)
class ResponseEnvelope:
    """Raw transport response, before any typed decoding."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    content: bytes = b""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


@runtime_checkable
class Transport(Protocol):
    """Anything able to put one HTTP exchange on the wire.

    Implementations raise :class:`TransportError` (or one of its subclasses)
    when no response could be obtained; any status code, including 4xx and
    5xx, is returned as an envelope.
    """

    async def transmit(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes,
        timeout: float,
    ) -> ResponseEnvelope: ...

    async def aclose(self) -> None: ...


@contextmanager
def translate_transport_errors(
    method: str, url: str
) -> Generator[None, None, None]:
    """Convert httpx transport failures into netify's transport errors.

    Raises:
        TransportTimeoutError: Connect, read, write or pool timeouts.
        TransportConnectionError: The connection could not be established or
            was dropped.
        TransportProtocolError: Redirect loops and undecodable content
            encodings; not retried.
        TransportError: Any other failure below the HTTP layer.
    """
    try:
        yield
    except httpx.TimeoutException as e:
        raise TransportTimeoutError(
            f"{method} {url} timed out: {e!r}", method=method, url=url
        ) from e
    except (httpx.ConnectError, httpx.RemoteProtocolError, httpx.ReadError) as e:
        raise TransportConnectionError(
            f"{method} {url} connection failed: {e!r}", method=method, url=url
        ) from e
    except httpx.TransportError as e:
        raise TransportError(
            f"{method} {url} failed: {e!r}", method=method, url=url
        ) from e
    except (httpx.TooManyRedirects, httpx.DecodingError) as e:
        raise TransportProtocolError(
            f"{method} {url} returned an unusable response: {e!r}",
            method=method,
            url=url,
        ) from e
    except httpx.RequestError as e:
        raise TransportError(
            f"{method} {url} failed: {e!r}", method=method, url=url
        ) from e


class HttpxTransport:
    """Default transport backed by a shared ``httpx.AsyncClient``.

    A client passed in by the caller is borrowed and left open by
    :meth:`aclose`; one created here is owned and closed with the transport.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        **client_kwargs: Any,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            **{**get_httpx_client_kwargs(), **client_kwargs}
        )

    async def transmit(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes,
        timeout: float,
    ) -> ResponseEnvelope:
        with translate_transport_errors(method, url):
            response = await self._client.request(
                method,
                url,
                headers=dict(headers),
                content=body or None,
                timeout=httpx.Timeout(timeout),
            )

        return ResponseEnvelope(
            status_code=response.status_code,
            headers=dict(response.headers.items()),
            content=response.content,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


@dataclass(frozen=True)
class PreparedRequest:
    """A fully built wire request, ready for :meth:`Transport.transmit`."""

    method: str
    url: str
    headers: Mapping[str, str]
    content: bytes
    timeout: float
    requires_authentication: bool = False

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def with_header(self, name: str, value: str) -> "PreparedRequest":
        lowered = name.lower()
        headers = {k: v for k, v in self.headers.items() if k.lower() != lowered}
        headers[name] = value
        return replace(self, headers=headers)
