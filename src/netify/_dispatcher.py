import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from logging import getLogger
from typing import Any, Optional

from ._auth import AuthenticationProvider, NoAuthenticationProvider
from ._cancellation import CancellationToken, cancellable_sleep, run_cancellable
from ._config import NetifyConfiguration
from ._decoding import JSONDecoder, ResponseDecoder
from ._encoding import BodyEncoder
from ._request import NetifyRequest
from ._retry import RetryPolicy
from ._transport import PreparedRequest, ResponseEnvelope, Transport
from ._utils._sanitize import redact_headers
from ._utils._url import join_url, with_query
from ._utils.constants import (
    CONTENT_TYPE_JSON,
    HEADER_ACCEPT,
    HEADER_CONTENT_TYPE,
    HEADER_USER_AGENT,
    LOGGER_NAME,
    USER_AGENT,
)
from .models.errors import (
    AuthenticationError,
    HttpStatusError,
    InvalidRequestError,
    NetifyError,
    RequestCancelledError,
    TransportError,
)

UNAUTHORIZED = 401


class DispatchState(str, Enum):
    BUILDING = "building"
    AUTHORIZING = "authorizing"
    SENDING = "sending"
    RETRYING = "retrying"
    REFRESHING_AUTH = "refreshing_auth"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            DispatchState.SUCCESS,
            DispatchState.FAILED,
            DispatchState.CANCELLED,
        )


@dataclass
class Attempt:
    """One transmission try of a logical call."""

    number: int
    timeout: float
    started_at: float = field(default_factory=time.monotonic)
    last_error: Optional[BaseException] = None

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


@dataclass
class DispatchTrace:
    """What happened during one ``dispatch`` call, kept for diagnostics."""

    states: list[DispatchState] = field(default_factory=list)
    attempts: list[Attempt] = field(default_factory=list)
    auth_retried: bool = False

    @property
    def state(self) -> Optional[DispatchState]:
        return self.states[-1] if self.states else None


class Dispatcher:
    """Runs the state machine of a single logical call.

    ``BUILDING -> AUTHORIZING -> SENDING`` then, depending on the outcome,
    ``SUCCESS``, ``RETRYING`` (back to ``SENDING`` after a backoff),
    ``REFRESHING_AUTH`` (back to ``AUTHORIZING`` once), ``FAILED`` or
    ``CANCELLED``.
    """

    def __init__(
        self,
        configuration: NetifyConfiguration,
        transport: Transport,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        encoder: Optional[BodyEncoder] = None,
        decoder: Optional[ResponseDecoder] = None,
    ) -> None:
        self._logger = getLogger(LOGGER_NAME)
        self._configuration = configuration
        self._transport = transport
        self._auth: AuthenticationProvider = (
            configuration.authentication_provider or NoAuthenticationProvider()
        )
        self._retry_policy = retry_policy or RetryPolicy(
            max_retry_count=configuration.max_retry_count,
            backoff=configuration.backoff,
            retry_status_codes=configuration.retry_status_codes,
        )
        self._encoder = encoder or BodyEncoder()
        self._decoder = decoder or JSONDecoder()

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def dispatch(
        self,
        request: NetifyRequest[Any],
        cancellation: Optional[CancellationToken] = None,
        trace: Optional[DispatchTrace] = None,
    ) -> Any:
        trace = trace if trace is not None else DispatchTrace()
        try:
            return await self._dispatch(request, cancellation, trace)
        except (RequestCancelledError, asyncio.CancelledError):
            self._transition(trace, DispatchState.CANCELLED, request)
            raise
        except NetifyError as e:
            self._transition(trace, DispatchState.FAILED, request)
            self._logger.debug(f"Request failed: {request.method.value} {request.path}: {e}")
            raise

    async def _dispatch(
        self,
        request: NetifyRequest[Any],
        cancellation: Optional[CancellationToken],
        trace: DispatchTrace,
    ) -> Any:
        self._transition(trace, DispatchState.BUILDING, request)
        if cancellation is not None:
            cancellation.raise_if_cancelled()
        prepared = self._build(request)

        attempt_number = 1
        while True:
            attempt = Attempt(number=attempt_number, timeout=prepared.timeout)
            trace.attempts.append(attempt)

            if request.requires_authentication:
                self._transition(trace, DispatchState.AUTHORIZING, request)
                outgoing = await run_cancellable(
                    self._auth.decorate(prepared), cancellation
                )
            else:
                outgoing = prepared

            self._transition(trace, DispatchState.SENDING, request)
            self._logger.debug(f"Request: {outgoing.method} {outgoing.url} (attempt {attempt.number})")
            self._logger.debug(f"HEADERS: {redact_headers(outgoing.headers)}")

            try:
                response = await run_cancellable(
                    self._transport.transmit(
                        outgoing.method,
                        outgoing.url,
                        outgoing.headers,
                        outgoing.content,
                        outgoing.timeout,
                    ),
                    cancellation,
                )
            except TransportError as e:
                error: NetifyError = e
            else:
                self._logger.debug(
                    f"Response: {response.status_code} for {outgoing.method} {outgoing.url} "
                    f"({attempt.elapsed:.3f}s)"
                )
                if response.is_success:
                    result = self._decode(request, response)
                    self._transition(trace, DispatchState.SUCCESS, request)
                    return result

                if response.status_code == UNAUTHORIZED and request.requires_authentication:
                    if trace.auth_retried:
                        raise AuthenticationError(
                            "Credentials rejected after refresh",
                            status_code=response.status_code,
                            content=response.content,
                        )
                    self._transition(trace, DispatchState.REFRESHING_AUTH, request)
                    auth_decision = await run_cancellable(
                        self._auth.handle_rejection(outgoing, response), cancellation
                    )
                    if not auth_decision.retry:
                        raise AuthenticationError(
                            "Credentials rejected",
                            status_code=response.status_code,
                            content=response.content,
                        )
                    trace.auth_retried = True
                    if auth_decision.delay > 0:
                        await cancellable_sleep(auth_decision.delay, cancellation)
                    # the authentication retry does not count against the
                    # retry budget
                    continue

                error = self._status_error(response, outgoing.url)

            attempt.last_error = error
            decision = self._retry_policy.should_retry(attempt.number, error)
            if not decision.retry:
                raise error

            self._transition(trace, DispatchState.RETRYING, request)
            self._logger.warning(
                f"{outgoing.method} {outgoing.url} failed ({error}). Retrying after "
                f"{decision.delay:.2f}s (attempt {attempt.number}/{self._retry_policy.max_retry_count})"
            )
            await cancellable_sleep(decision.delay, cancellation)
            attempt_number += 1

    def _build(self, request: NetifyRequest[Any]) -> PreparedRequest:
        if request.has_body_conflict:
            if self._configuration.strict_mode:
                raise InvalidRequestError(
                    f"{request.method.value} request to {request.path} must not carry a body"
                )
            self._logger.warning(
                f"{request.method.value} request to {request.path} carries a body"
            )

        encoded = self._encoder.encode(request.body, request.content_type)

        headers: dict[str, str] = {
            HEADER_ACCEPT: CONTENT_TYPE_JSON,
            HEADER_USER_AGENT: USER_AGENT,
        }
        headers.update(self._configuration.default_headers)
        if encoded.content_type:
            headers[HEADER_CONTENT_TYPE] = encoded.content_type
        headers.update(request.headers)

        url = with_query(
            join_url(self._configuration.base_url, request.path), request.query_params
        )
        timeout = (
            request.timeout
            if request.timeout is not None
            else self._configuration.default_timeout
        )

        return PreparedRequest(
            method=request.method.value,
            url=url,
            headers=headers,
            content=encoded.content,
            timeout=timeout,
            requires_authentication=request.requires_authentication,
        )

    def _decode(self, request: NetifyRequest[Any], response: ResponseEnvelope) -> Any:
        decoder = request.decoder or self._decoder
        return decoder.decode(response.content, request.return_type)

    def _status_error(self, response: ResponseEnvelope, url: str) -> HttpStatusError:
        return HttpStatusError(
            response.status_code,
            headers=response.headers,
            content=response.content,
            url=url,
            retryable=response.status_code in self._retry_policy.retry_status_codes,
        )

    def _transition(
        self, trace: DispatchTrace, state: DispatchState, request: NetifyRequest[Any]
    ) -> None:
        trace.states.append(state)
        self._logger.debug(f"{request.method.value} {request.path} -> {state.value}")
