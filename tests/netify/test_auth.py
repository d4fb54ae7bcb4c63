import asyncio
import base64
import json
from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from netify import (
    AuthenticationError,
    BackoffParameters,
    BearerTokenAuthenticationProvider,
    CancellationToken,
    Credential,
    NetifyClient,
    NetifyConfiguration,
    NetifyRequest,
    NoAuthenticationProvider,
    PreparedRequest,
    RequestCancelledError,
    ResponseEnvelope,
    StaticBearerAuthenticationProvider,
)
from tests.utils.transport import (
    RecordedRequest,
    ScriptedTransport,
    json_response,
    status_response,
)


def make_jwt(claims: dict) -> str:
    def segment(data: dict) -> str:
        raw = json.dumps(data).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    return f"{segment({'alg': 'none'})}.{segment(claims)}.signature"


def accept_only(token: str) -> Callable[[RecordedRequest], ResponseEnvelope]:
    def handler(request: RecordedRequest) -> ResponseEnvelope:
        if request.authorization == f"Bearer {token}":
            return json_response({"ok": True})
        return status_response(401)

    return handler


async def wait_for(condition: Callable[[], bool], rounds: int = 1000) -> None:
    for _ in range(rounds):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def client_for(
    provider, transport: ScriptedTransport, base_url: str, backoff: BackoffParameters
) -> NetifyClient:
    configuration = NetifyConfiguration(
        base_url=base_url, backoff=backoff, authentication_provider=provider
    )
    return NetifyClient(configuration, transport)


@pytest.fixture
def prepared() -> PreparedRequest:
    return PreparedRequest(
        method="GET",
        url="https://api.example.com/me",
        headers={"Accept": "application/json"},
        content=b"",
        timeout=30.0,
        requires_authentication=True,
    )


@pytest.fixture
def anonymous(prepared: PreparedRequest) -> PreparedRequest:
    return PreparedRequest(
        method=prepared.method,
        url=prepared.url,
        headers=prepared.headers,
        content=prepared.content,
        timeout=prepared.timeout,
        requires_authentication=False,
    )


class TestCredential:
    def test_expiry_read_from_jwt(self):
        exp = int(datetime(2030, 1, 1, tzinfo=timezone.utc).timestamp())

        credential = Credential(access_token=make_jwt({"exp": exp}))

        assert credential.expires_at == datetime(2030, 1, 1, tzinfo=timezone.utc)
        assert not credential.is_expired()

    def test_opaque_token_never_expires(self):
        credential = Credential(access_token="opaque")

        assert credential.expires_at is None
        assert not credential.is_expired(leeway=3600)

    def test_explicit_expiry_wins_over_jwt(self):
        expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        token = make_jwt({"exp": 4102444800})

        credential = Credential(access_token=token, expires_at=expires_at)

        assert credential.is_expired()

    def test_leeway_treats_nearly_expired_as_expired(self):
        credential = Credential(
            access_token="t",
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=10),
        )

        assert not credential.is_expired()
        assert credential.is_expired(leeway=30)

    def test_from_token_response(self):
        credential = Credential.from_token_response(
            {
                "access_token": "new-access",
                "refresh_token": "new-refresh",
                "expires_in": 3600,
                "token_type": "bearer",
            }
        )

        assert credential.access_token == "new-access"
        assert credential.refresh_token == "new-refresh"
        assert credential.expires_at is not None
        assert not credential.is_expired(leeway=60)
        assert credential.authorization == "Bearer new-access"

    def test_repr_hides_tokens(self):
        credential = Credential(access_token="top-secret", refresh_token="also-secret")

        assert "top-secret" not in repr(credential)
        assert "also-secret" not in repr(credential)


class TestProvidersDecorate:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "provider",
        [
            NoAuthenticationProvider(),
            StaticBearerAuthenticationProvider("static-token"),
            BearerTokenAuthenticationProvider(
                "access", "refresh", lambda credential: credential
            ),
        ],
        ids=["none", "static", "refreshable"],
    )
    async def test_anonymous_request_left_untouched(
        self, provider, anonymous: PreparedRequest
    ):
        assert await provider.decorate(anonymous) == anonymous

    @pytest.mark.asyncio
    async def test_no_auth_adds_nothing(self, prepared: PreparedRequest):
        decorated = await NoAuthenticationProvider().decorate(prepared)

        assert decorated.header("Authorization") is None

    @pytest.mark.asyncio
    async def test_static_bearer_adds_header(self, prepared: PreparedRequest):
        provider = StaticBearerAuthenticationProvider("static-token")

        decorated = await provider.decorate(prepared)

        assert decorated.header("authorization") == "Bearer static-token"
        assert prepared.header("Authorization") is None

    @pytest.mark.asyncio
    async def test_static_bearer_replaces_existing_header(
        self, prepared: PreparedRequest
    ):
        provider = StaticBearerAuthenticationProvider("static-token")
        request = prepared.with_header("authorization", "Bearer caller")

        decorated = await provider.decorate(request)

        assert dict(decorated.headers) == {
            "Accept": "application/json",
            "Authorization": "Bearer static-token",
        }

    def test_static_bearer_requires_token(self):
        with pytest.raises(ValueError):
            StaticBearerAuthenticationProvider("")

    def test_refreshable_requires_handler(self):
        with pytest.raises(ValueError, match="refresh_handler"):
            BearerTokenAuthenticationProvider("access", "refresh")


class TestRejection:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "provider",
        [NoAuthenticationProvider(), StaticBearerAuthenticationProvider("token")],
        ids=["none", "static"],
    )
    async def test_non_refreshable_providers_give_up(
        self, provider, prepared: PreparedRequest
    ):
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.handle_rejection(
                prepared, status_response(401)
            )

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_static_bearer_fails_after_single_attempt(
        self,
        transport: ScriptedTransport,
        base_url: str,
        no_backoff: BackoffParameters,
    ):
        transport.queue(status_response(401))
        client = client_for(
            StaticBearerAuthenticationProvider("bad"), transport, base_url, no_backoff
        )

        with pytest.raises(AuthenticationError):
            await client.send(NetifyRequest("/me"))

        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_rejection_of_already_replaced_token_skips_refresh(
        self, prepared: PreparedRequest
    ):
        provider = BearerTokenAuthenticationProvider(
            "old", "refresh", lambda credential: "new"
        )
        await provider.handle_rejection(
            prepared.with_header("Authorization", "Bearer old"), status_response(401)
        )
        assert provider.refresh_count == 1

        decision = await provider.handle_rejection(
            prepared.with_header("Authorization", "Bearer old"), status_response(401)
        )

        assert decision.retry
        assert provider.refresh_count == 1
        assert provider.credential.access_token == "new"


class TestRefreshableBearer:
    @pytest.mark.asyncio
    async def test_refresh_then_retry(
        self,
        transport: ScriptedTransport,
        base_url: str,
        no_backoff: BackoffParameters,
    ):
        transport.set_handler(accept_only("new-token"))
        provider = BearerTokenAuthenticationProvider(
            "old-token",
            "refresh-token",
            lambda credential: Credential(
                access_token="new-token", refresh_token=credential.refresh_token
            ),
        )
        client = client_for(provider, transport, base_url, no_backoff)

        assert await client.send(NetifyRequest("/me")) == {"ok": True}

        assert [r.authorization for r in transport.requests] == [
            "Bearer old-token",
            "Bearer new-token",
        ]
        assert provider.refresh_count == 1
        assert provider.credential.refresh_token == "refresh-token"

    @pytest.mark.asyncio
    async def test_concurrent_rejections_share_one_refresh(
        self,
        transport: ScriptedTransport,
        base_url: str,
        no_backoff: BackoffParameters,
    ):
        transport.set_handler(accept_only("new-token"))

        async def refresh(credential: Credential) -> Credential:
            await asyncio.sleep(0.01)
            return Credential(access_token="new-token")

        provider = BearerTokenAuthenticationProvider("old-token", "r", refresh)
        client = client_for(provider, transport, base_url, no_backoff)

        results = await asyncio.gather(
            *(client.send(NetifyRequest(f"/items/{i}")) for i in range(10))
        )

        assert results == [{"ok": True}] * 10
        assert provider.refresh_count == 1
        retried = [r for r in transport.requests if r.authorization == "Bearer new-token"]
        assert len(retried) == 10

    @pytest.mark.asyncio
    async def test_failed_refresh_fails_every_waiter_once(
        self,
        transport: ScriptedTransport,
        base_url: str,
        no_backoff: BackoffParameters,
    ):
        transport.queue(status_response(401))

        async def refresh(credential: Credential) -> Credential:
            await asyncio.sleep(0.01)
            raise RuntimeError("refresh endpoint down")

        provider = BearerTokenAuthenticationProvider("old-token", "r", refresh)
        client = client_for(provider, transport, base_url, no_backoff)

        results = await asyncio.gather(
            *(client.send(NetifyRequest(f"/items/{i}")) for i in range(10)),
            return_exceptions=True,
        )

        assert all(isinstance(result, AuthenticationError) for result in results)
        assert provider.refresh_count == 1
        assert len(transport.requests) == 10
        assert not provider.is_refreshing

    @pytest.mark.asyncio
    async def test_refresh_handler_errors_are_wrapped(
        self, prepared: PreparedRequest
    ):
        def refresh(credential: Credential) -> Credential:
            raise ConnectionError("boom")

        provider = BearerTokenAuthenticationProvider("old", "r", refresh)

        with pytest.raises(AuthenticationError, match="boom") as exc_info:
            await provider.handle_rejection(
                prepared.with_header("Authorization", "Bearer old"),
                status_response(401),
            )

        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_invalid_handler_result_fails(self, prepared: PreparedRequest):
        provider = BearerTokenAuthenticationProvider("old", "r", lambda c: None)

        with pytest.raises(AuthenticationError, match="NoneType"):
            await provider.handle_rejection(
                prepared.with_header("Authorization", "Bearer old"),
                status_response(401),
            )

    @pytest.mark.asyncio
    async def test_second_rejection_after_refresh_fails(
        self,
        transport: ScriptedTransport,
        base_url: str,
        no_backoff: BackoffParameters,
    ):
        transport.queue(status_response(401))
        provider = BearerTokenAuthenticationProvider("old", "r", lambda c: "new")
        client = client_for(provider, transport, base_url, no_backoff)

        with pytest.raises(AuthenticationError, match="after refresh"):
            await client.send(NetifyRequest("/me"))

        assert len(transport.requests) == 2
        assert provider.refresh_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_disturb_refresh(
        self,
        transport: ScriptedTransport,
        base_url: str,
        no_backoff: BackoffParameters,
    ):
        transport.set_handler(accept_only("new-token"))
        release = asyncio.Event()

        async def refresh(credential: Credential) -> Credential:
            await release.wait()
            return Credential(access_token="new-token")

        provider = BearerTokenAuthenticationProvider("old-token", "r", refresh)
        client = client_for(provider, transport, base_url, no_backoff)
        token = CancellationToken()

        cancelled = asyncio.create_task(
            client.send(NetifyRequest("/a"), cancellation=token)
        )
        others = [
            asyncio.create_task(client.send(NetifyRequest(path)))
            for path in ("/b", "/c")
        ]
        await wait_for(lambda: provider.is_refreshing and len(transport.requests) == 3)

        token.cancel()
        with pytest.raises(RequestCancelledError):
            await cancelled

        assert provider.is_refreshing
        release.set()
        assert await asyncio.gather(*others) == [{"ok": True}, {"ok": True}]
        assert provider.refresh_count == 1

    @pytest.mark.asyncio
    async def test_expired_credential_refreshed_before_sending(
        self,
        transport: ScriptedTransport,
        base_url: str,
        no_backoff: BackoffParameters,
    ):
        transport.set_handler(accept_only("fresh"))
        provider = BearerTokenAuthenticationProvider(
            credential=Credential(
                access_token="expired",
                refresh_token="r",
                expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
            ),
            refresh_handler=lambda credential: Credential.from_token_response(
                {"access_token": "fresh", "expires_in": 3600}
            ),
        )
        client = client_for(provider, transport, base_url, no_backoff)

        await client.send(NetifyRequest("/me"))

        assert [r.authorization for r in transport.requests] == ["Bearer fresh"]
        assert provider.refresh_count == 1
