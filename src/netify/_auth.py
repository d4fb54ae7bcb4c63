"""Authentication providers.

A provider decorates outgoing requests with the current credential and
decides what happens when the server rejects it. Three variants exist:

- :class:`NoAuthenticationProvider` attaches nothing.
- :class:`StaticBearerAuthenticationProvider` attaches a fixed bearer token
  and gives up as soon as it is rejected.
- :class:`BearerTokenAuthenticationProvider` refreshes rejected or expired
  tokens through a caller-supplied handler. Refreshes are single-flight: all
  requests that discover a stale credential while a refresh is running wait
  for that one refresh instead of starting their own.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from logging import getLogger
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator

from ._retry import RetryDecision
from ._transport import PreparedRequest, ResponseEnvelope
from ._utils._auth import token_expiry
from ._utils.constants import HEADER_AUTHORIZATION, LOGGER_NAME
from .models.errors import AuthenticationError

logger = getLogger(LOGGER_NAME)


class Credential(BaseModel):
    """Access credential shared by a provider and every request it decorates.

    When ``expires_at`` is not given it is read from the ``exp`` claim of a
    JWT access token; opaque tokens never expire on the client side.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    token_type: str = "Bearer"

    @model_validator(mode="before")
    @classmethod
    def _expiry_from_token(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("expires_at") is None:
            access_token = data.get("access_token")
            if isinstance(access_token, str):
                data = {**data, "expires_at": token_expiry(access_token)}
        return data

    @classmethod
    def from_token_response(cls, payload: Mapping[str, Any]) -> "Credential":
        """Build a credential from an OAuth2 token endpoint response."""
        expires_at = None
        if payload.get("expires_in") is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(
                seconds=float(payload["expires_in"])
            )
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
            token_type=payload.get("token_type") or "Bearer",
        )

    @property
    def authorization(self) -> str:
        scheme = "Bearer" if self.token_type.lower() == "bearer" else self.token_type
        return f"{scheme} {self.access_token}"

    def is_expired(self, leeway: float = 0.0) -> bool:
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) >= expires_at - timedelta(seconds=leeway)

    def __repr__(self) -> str:
        return (
            f"Credential(access_token='***', "
            f"refresh_token={'***' if self.refresh_token else None!r}, "
            f"expires_at={self.expires_at!r})"
        )


RefreshHandler = Callable[[Credential], Union[Credential, Awaitable[Credential]]]


class AuthenticationProvider(ABC):
    @abstractmethod
    async def decorate(self, request: PreparedRequest) -> PreparedRequest:
        """Attach credentials to ``request`` if it requires authentication."""

    @abstractmethod
    async def handle_rejection(
        self, request: PreparedRequest, response: ResponseEnvelope
    ) -> RetryDecision:
        """React to a 401 for ``request``.

        Returns a decision to retry, or raises :class:`AuthenticationError`.
        """


class NoAuthenticationProvider(AuthenticationProvider):
    async def decorate(self, request: PreparedRequest) -> PreparedRequest:
        return request

    async def handle_rejection(
        self, request: PreparedRequest, response: ResponseEnvelope
    ) -> RetryDecision:
        raise AuthenticationError(
            "Request requires authentication but no credentials are configured",
            status_code=response.status_code,
            content=response.content,
        )


class StaticBearerAuthenticationProvider(AuthenticationProvider):
    def __init__(self, access_token: str) -> None:
        if not access_token:
            raise ValueError("access_token must not be empty")
        self._credential = Credential(access_token=access_token)

    @property
    def credential(self) -> Credential:
        return self._credential

    async def decorate(self, request: PreparedRequest) -> PreparedRequest:
        if not request.requires_authentication:
            return request
        return request.with_header(HEADER_AUTHORIZATION, self._credential.authorization)

    async def handle_rejection(
        self, request: PreparedRequest, response: ResponseEnvelope
    ) -> RetryDecision:
        raise AuthenticationError(
            "Access token was rejected",
            status_code=response.status_code,
            content=response.content,
        )


class BearerTokenAuthenticationProvider(AuthenticationProvider):
    """Bearer token provider with single-flight refresh.

    Args:
        access_token: Initial access token (ignored when ``credential`` is
            given).
        refresh_token: Initial refresh token.
        refresh_handler: Called with the current :class:`Credential` and
            returns the replacement, synchronously or as an awaitable. A
            plain string is accepted as a new access token that keeps the
            current refresh token.
        credential: Initial credential, for callers that track expiry.
        expiry_leeway: Seconds before ``expires_at`` at which a credential is
            already treated as expired and refreshed before use.

    A failed refresh is final for the credential it tried to replace:
    requests still holding that token fail with :class:`AuthenticationError`
    without triggering another refresh.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        refresh_handler: Optional[RefreshHandler] = None,
        *,
        credential: Optional[Credential] = None,
        expiry_leeway: float = 30.0,
    ) -> None:
        if refresh_handler is None:
            raise ValueError("refresh_handler is required")
        if credential is None:
            if not access_token:
                raise ValueError("Either access_token or credential is required")
            credential = Credential(
                access_token=access_token, refresh_token=refresh_token
            )

        self._credential = credential
        self._refresh_handler = refresh_handler
        self._expiry_leeway = expiry_leeway
        self._lock = asyncio.Lock()
        self._refresh_task: Optional[asyncio.Task[Credential]] = None
        self._failed_token: Optional[str] = None
        self.refresh_count = 0

    @property
    def credential(self) -> Credential:
        return self._credential

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None

    async def decorate(self, request: PreparedRequest) -> PreparedRequest:
        if not request.requires_authentication:
            return request

        credential = self._credential
        if credential.is_expired(self._expiry_leeway):
            logger.debug("Access token expired, refreshing before use")
            credential = await self._refresh(credential.access_token)
        return request.with_header(HEADER_AUTHORIZATION, credential.authorization)

    async def handle_rejection(
        self, request: PreparedRequest, response: ResponseEnvelope
    ) -> RetryDecision:
        await self._refresh(_presented_token(request))
        return RetryDecision.after(0.0)

    async def _refresh(self, stale_token: Optional[str]) -> Credential:
        async with self._lock:
            if self._credential.access_token != stale_token:
                # replaced since this request was decorated
                return self._credential
            if stale_token == self._failed_token:
                raise AuthenticationError(
                    "Token refresh already failed for this credential"
                )
            if self._refresh_task is None:
                self._refresh_task = asyncio.create_task(
                    self._run_refresh(self._credential)
                )
                self._refresh_task.add_done_callback(_retrieve_outcome)
            task = self._refresh_task

        # shielded so a cancelled waiter leaves the refresh and the other
        # waiters alone
        return await asyncio.shield(task)

    async def _run_refresh(self, credential: Credential) -> Credential:
        self.refresh_count += 1
        logger.warning("Access token rejected or expired, refreshing")
        try:
            result = self._refresh_handler(credential)
            if inspect.isawaitable(result):
                result = await result
            refreshed = _as_credential(result, credential)
        except Exception as e:
            self._failed_token = credential.access_token
            logger.error(f"Token refresh failed: {e!r}")
            if isinstance(e, AuthenticationError):
                raise
            raise AuthenticationError(f"Token refresh failed: {e}") from e
        finally:
            self._refresh_task = None

        self._credential = refreshed
        logger.info("Access token refreshed")
        return refreshed


def _presented_token(request: PreparedRequest) -> Optional[str]:
    header = request.header(HEADER_AUTHORIZATION)
    if not header:
        return None
    _, _, token = header.partition(" ")
    return token or None


def _as_credential(result: Any, previous: Credential) -> Credential:
    if isinstance(result, Credential):
        return result
    if isinstance(result, str) and result:
        return Credential(access_token=result, refresh_token=previous.refresh_token)
    raise AuthenticationError(
        f"Refresh handler returned {type(result).__name__}, expected Credential"
    )


def _retrieve_outcome(task: "asyncio.Task[Any]") -> None:
    # every waiter may have been cancelled; keep asyncio from reporting an
    # unretrieved exception
    if not task.cancelled():
        task.exception()
