from .errors import (
    AuthenticationError,
    BaseUrlMissingError,
    DecodingError,
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
from .responses import EmptyResponse

__all__ = [
    "AuthenticationError",
    "BaseUrlMissingError",
    "DecodingError",
    "EmptyResponse",
    "EncodingError",
    "HttpStatusError",
    "InvalidRequestError",
    "NetifyError",
    "RequestCancelledError",
    "TransportConnectionError",
    "TransportError",
    "TransportProtocolError",
    "TransportTimeoutError",
]
