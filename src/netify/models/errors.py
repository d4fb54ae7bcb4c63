import json
from typing import Any, Mapping, Optional


class NetifyError(Exception):
    """Base class for every error raised by a netify client."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    @property
    def is_retryable(self) -> bool:
        return False


class BaseUrlMissingError(NetifyError):
    def __init__(
        self,
        message="Base URL missing. Pass base_url explicitly or set the NETIFY_BASE_URL environment variable.",
    ):
        super().__init__(message)


class InvalidRequestError(NetifyError, ValueError):
    """Raised when a request descriptor cannot be sent as built."""


class TransportError(NetifyError):
    """The request never produced an HTTP response."""

    def __init__(
        self,
        message: str,
        *,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        self.method = method
        self.url = url
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return True


class TransportTimeoutError(TransportError):
    pass


class TransportConnectionError(TransportError):
    pass


class TransportProtocolError(TransportError):
    """The exchange ended without a usable response, such as a redirect loop
    or an undecodable content encoding."""

    @property
    def is_retryable(self) -> bool:
        return False


class HttpStatusError(NetifyError):
    """A response arrived with a non-2xx status code.

    The raw body is kept on the error so callers can inspect what the server
    actually sent back.
    """

    def __init__(
        self,
        status_code: int,
        *,
        headers: Optional[Mapping[str, str]] = None,
        content: bytes = b"",
        url: Optional[str] = None,
        retryable: bool = False,
    ) -> None:
        self.status_code = status_code
        self.headers = dict(headers or {})
        self.content = content
        self.url = url
        self._retryable = retryable
        self.server_message = _extract_server_message(content)

        message = f"HTTP {status_code}"
        if url:
            message += f" for {url}"
        if self.server_message:
            message += f": {self.server_message}"
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self._retryable

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class AuthenticationError(NetifyError):
    """Credentials were rejected and could not be refreshed."""

    def __init__(
        self,
        message: str = "Authentication failed",
        *,
        status_code: Optional[int] = None,
        content: Optional[bytes] = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        super().__init__(message)


class EncodingError(NetifyError):
    """The request body could not be serialized."""


class DecodingError(NetifyError):
    """The response body could not be turned into the expected type."""

    def __init__(
        self, message: str, *, content: bytes, return_type: Any = None
    ) -> None:
        self.content = content
        self.return_type = return_type
        super().__init__(message)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class RequestCancelledError(NetifyError):
    """The caller cancelled the request before it reached a terminal state."""

    def __init__(self, message: str = "Request cancelled") -> None:
        super().__init__(message)


def _extract_server_message(content: bytes) -> Optional[str]:
    if not content:
        return None
    try:
        error_body = json.loads(content)
    except ValueError:
        return None

    if isinstance(error_body, dict):
        message = (
            error_body.get("message")
            or error_body.get("error")
            or error_body.get("detail")
        )
        if message is not None:
            return str(message)
    return None
