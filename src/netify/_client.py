from logging import getLogger
from types import TracebackType
from typing import Any, Optional, TypeVar

from ._cancellation import CancellationToken
from ._config import NetifyConfiguration
from ._decoding import ResponseDecoder
from ._dispatcher import Dispatcher, DispatchTrace
from ._request import NetifyRequest
from ._retry import RetryPolicy
from ._transport import HttpxTransport, Transport
from ._utils._logs import setup_logging
from ._utils._sanitize import redact_headers
from ._utils.constants import LOGGER_NAME

T = TypeVar("T")


class NetifyClient:
    """Entry point for sending :class:`NetifyRequest` descriptors.

    One client holds one immutable :class:`NetifyConfiguration` and may be
    shared by any number of concurrent ``send`` calls.

    Examples:
        >>> configuration = NetifyConfiguration(
        ...     base_url="https://jsonplaceholder.typicode.com",
        ...     max_retry_count=3,
        ... )
        >>> async with NetifyClient(configuration) as client:
        ...     posts = await client.send(
        ...         NetifyRequest("/posts", return_type=list[Post], requires_authentication=False)
        ...     )
    """

    def __init__(
        self,
        configuration: NetifyConfiguration,
        transport: Optional[Transport] = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        decoder: Optional[ResponseDecoder] = None,
    ) -> None:
        self._configuration = configuration
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport()
        self._dispatcher = Dispatcher(
            configuration,
            self._transport,
            retry_policy=retry_policy,
            decoder=decoder,
        )

        setup_logging(configuration.log_level.logging_level)
        self._logger = getLogger(LOGGER_NAME)
        self._logger.debug("CONFIG:")
        self._logger.debug(
            f"base_url={configuration.base_url} "
            f"default_timeout={configuration.default_timeout} "
            f"max_retry_count={configuration.max_retry_count} "
            f"default_headers={redact_headers(configuration.default_headers)}"
        )

    @classmethod
    def from_env(
        cls, env_file: Optional[str] = None, **overrides: Any
    ) -> "NetifyClient":
        return cls(NetifyConfiguration.from_env(env_file, **overrides))

    @property
    def configuration(self) -> NetifyConfiguration:
        return self._configuration

    async def send(
        self,
        request: NetifyRequest[T],
        *,
        cancellation: Optional[CancellationToken] = None,
        trace: Optional[DispatchTrace] = None,
    ) -> T:
        """Send ``request`` and return its decoded result.

        Args:
            request: The call to make.
            cancellation: Token that aborts the call from the outside.
            trace: Collects the states and attempts the call went through.

        Returns:
            The response decoded into ``request.return_type``.

        Raises:
            TransportError: No response could be obtained, after retries.
            HttpStatusError: Non-2xx response, after retries where allowed.
            AuthenticationError: Credentials rejected and not refreshable.
            EncodingError: The body could not be serialized.
            DecodingError: The response did not match ``return_type``.
            RequestCancelledError: ``cancellation`` fired.
            InvalidRequestError: Strict mode refused the request.
        """
        return await self._dispatcher.dispatch(request, cancellation, trace)

    async def aclose(self) -> None:
        if self._owns_transport:
            await self._transport.aclose()

    async def __aenter__(self) -> "NetifyClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
