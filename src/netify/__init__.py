from ._auth import (
    AuthenticationProvider,
    BearerTokenAuthenticationProvider,
    Credential,
    NoAuthenticationProvider,
    StaticBearerAuthenticationProvider,
)
from ._cancellation import CancellationToken
from ._client import NetifyClient
from ._config import LogLevel, NetifyConfiguration
from ._decoding import JSONDecoder, ResponseDecoder
from ._dispatcher import Attempt, Dispatcher, DispatchState, DispatchTrace
from ._encoding import BodyEncoder, EncodedBody, decode_key_value
from ._request import (
    ContentType,
    HTTPMethod,
    KeyValueBody,
    MultipartBody,
    MultipartData,
    NetifyRequest,
    ObjectBody,
    RawBody,
)
from ._retry import BackoffParameters, BackoffStrategy, RetryDecision, RetryPolicy
from ._transport import HttpxTransport, PreparedRequest, ResponseEnvelope, Transport
from .models import (
    AuthenticationError,
    BaseUrlMissingError,
    DecodingError,
    EmptyResponse,
    EncodingError,
    HttpStatusError,
    InvalidRequestError,
    NetifyError,
    RequestCancelledError,
    TransportConnectionError,
    TransportError,
    TransportProtocolError,
    TransportTimeoutError,
)

__all__ = [
    "Attempt",
    "AuthenticationError",
    "AuthenticationProvider",
    "BackoffParameters",
    "BackoffStrategy",
    "BaseUrlMissingError",
    "BearerTokenAuthenticationProvider",
    "BodyEncoder",
    "CancellationToken",
    "ContentType",
    "Credential",
    "DecodingError",
    "Dispatcher",
    "DispatchState",
    "DispatchTrace",
    "EmptyResponse",
    "EncodedBody",
    "EncodingError",
    "HTTPMethod",
    "HttpStatusError",
    "HttpxTransport",
    "InvalidRequestError",
    "JSONDecoder",
    "KeyValueBody",
    "LogLevel",
    "MultipartBody",
    "MultipartData",
    "NetifyClient",
    "NetifyConfiguration",
    "NetifyError",
    "NetifyRequest",
    "NoAuthenticationProvider",
    "ObjectBody",
    "PreparedRequest",
    "RawBody",
    "RequestCancelledError",
    "ResponseDecoder",
    "ResponseEnvelope",
    "RetryDecision",
    "RetryPolicy",
    "StaticBearerAuthenticationProvider",
    "Transport",
    "TransportConnectionError",
    "TransportError",
    "TransportProtocolError",
    "TransportTimeoutError",
    "decode_key_value",
]
