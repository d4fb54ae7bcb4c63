from dataclasses import dataclass, field, replace
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

if TYPE_CHECKING:
    from ._decoding import ResponseDecoder

T = TypeVar("T")


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


# Methods whose requests conventionally carry no body.
BODYLESS_METHODS = frozenset(
    {HTTPMethod.GET, HTTPMethod.HEAD, HTTPMethod.DELETE, HTTPMethod.OPTIONS}
)


class ContentType(str, Enum):
    """How a key-value body is put on the wire."""

    JSON = "json"
    FORM = "form"
    MULTIPART = "multipart"


@dataclass(frozen=True)
class MultipartData:
    """One part of a ``multipart/form-data`` body.

    A part without ``file_name`` is written as a plain form field.
    """

    name: str
    file_data: bytes
    file_name: Optional[str] = None
    mime_type: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Multipart part name must not be empty")
        if isinstance(self.file_data, str):
            object.__setattr__(self, "file_data", self.file_data.encode("utf-8"))


@dataclass(frozen=True)
class KeyValueBody:
    values: Mapping[str, Any]


@dataclass(frozen=True)
class ObjectBody:
    value: Any


@dataclass(frozen=True)
class RawBody:
    data: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class MultipartBody:
    parts: tuple[MultipartData, ...]

    def __post_init__(self) -> None:
        if not self.parts:
            raise ValueError("Multipart body requires at least one part")


RequestBody = Union[KeyValueBody, ObjectBody, RawBody, MultipartBody]


def coerce_body(body: Any) -> Optional[RequestBody]:
    """Classify a loosely typed ``body`` argument into one of the body variants.

    Mappings become key-value bodies, ``bytes`` raw bodies, sequences of
    :class:`MultipartData` multipart bodies, and anything else (pydantic
    models, dataclasses, lists) an encodable object.
    """
    if body is None:
        return None
    if isinstance(body, (KeyValueBody, ObjectBody, RawBody, MultipartBody)):
        return body
    if isinstance(body, (bytes, bytearray, memoryview)):
        return RawBody(bytes(body))
    if isinstance(body, Mapping):
        return KeyValueBody(dict(body))
    if (
        isinstance(body, (list, tuple))
        and body
        and all(isinstance(part, MultipartData) for part in body)
    ):
        return MultipartBody(tuple(body))
    return ObjectBody(body)


def _coerce_query(
    query_params: Union[Mapping[str, Any], Sequence[tuple[str, Any]], None],
) -> tuple[tuple[str, str], ...]:
    if not query_params:
        return ()
    items = (
        query_params.items() if isinstance(query_params, Mapping) else query_params
    )
    return tuple((str(key), _query_value(value)) for key, value in items)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True, init=False)
class NetifyRequest(Generic[T]):
    """Describes a single HTTP call and the type its response decodes into.

    Instances are immutable; use :meth:`with_headers` or :meth:`with_query`
    to derive variations.

    Examples:
        >>> class User(BaseModel):
        ...     id: int
        ...     name: str
        >>> request = NetifyRequest("/users/1", return_type=User)
        >>> user = await client.send(request)
    """

    path: str
    method: HTTPMethod
    return_type: Any
    headers: Mapping[str, str]
    query_params: tuple[tuple[str, str], ...]
    body: Optional[RequestBody]
    content_type: ContentType
    requires_authentication: bool
    timeout: Optional[float]
    decoder: Optional["ResponseDecoder"] = field(default=None, compare=False)

    def __init__(
        self,
        path: str,
        method: Union[HTTPMethod, str] = HTTPMethod.GET,
        *,
        return_type: Any = Any,
        headers: Optional[Mapping[str, str]] = None,
        query_params: Union[Mapping[str, Any], Sequence[tuple[str, Any]], None] = None,
        body: Any = None,
        content_type: Union[ContentType, str] = ContentType.JSON,
        requires_authentication: bool = True,
        timeout: Optional[float] = None,
        decoder: Optional["ResponseDecoder"] = None,
    ) -> None:
        if not path:
            raise ValueError("Request path must not be empty")
        try:
            method = HTTPMethod(method.upper() if isinstance(method, str) else method)
        except ValueError:
            raise ValueError(f"Unsupported HTTP method: {method!r}") from None
        if timeout is not None and timeout <= 0:
            raise ValueError("Request timeout must be positive")

        content_type = ContentType(content_type)
        body = coerce_body(body)
        if content_type is ContentType.MULTIPART and not isinstance(
            body, MultipartBody
        ):
            raise ValueError("Multipart content type requires MultipartData parts")

        object.__setattr__(self, "path", path)
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "return_type", return_type)
        object.__setattr__(self, "headers", dict(headers or {}))
        object.__setattr__(self, "query_params", _coerce_query(query_params))
        object.__setattr__(self, "body", body)
        object.__setattr__(self, "content_type", content_type)
        object.__setattr__(self, "requires_authentication", requires_authentication)
        object.__setattr__(self, "timeout", timeout)
        object.__setattr__(self, "decoder", decoder)

    def __hash__(self) -> int:
        return hash((self.method, self.path, self.query_params))

    @property
    def has_body_conflict(self) -> bool:
        """True when a bodyless method (GET, HEAD, DELETE, OPTIONS) carries a body."""
        return self.body is not None and self.method in BODYLESS_METHODS

    def with_headers(self, headers: Mapping[str, str]) -> "NetifyRequest[T]":
        return replace(self, headers={**self.headers, **headers})

    def with_query(
        self, query_params: Union[Mapping[str, Any], Sequence[tuple[str, Any]]]
    ) -> "NetifyRequest[T]":
        return replace(
            self, query_params=self.query_params + _coerce_query(query_params)
        )
