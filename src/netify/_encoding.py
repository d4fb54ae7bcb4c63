import json
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import parse_qsl, urlencode

from pydantic_core import PydanticSerializationError, to_json

from ._request import (
    ContentType,
    KeyValueBody,
    MultipartBody,
    MultipartData,
    ObjectBody,
    RawBody,
    RequestBody,
)
from ._utils.constants import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_MULTIPART,
    CONTENT_TYPE_OCTET_STREAM,
)
from .models.errors import EncodingError

CRLF = b"\r\n"


@dataclass(frozen=True)
class EncodedBody:
    content: bytes
    content_type: Optional[str]


EMPTY_BODY = EncodedBody(content=b"", content_type=None)


class BodyEncoder:
    """Turns a request body variant into wire bytes and a content type."""

    def __init__(self, *, boundary_prefix: str = "netify-") -> None:
        self._boundary_prefix = boundary_prefix

    def encode(
        self,
        body: Optional[RequestBody],
        content_type: ContentType = ContentType.JSON,
    ) -> EncodedBody:
        if body is None:
            return EMPTY_BODY
        if isinstance(body, RawBody):
            return EncodedBody(
                content=body.data,
                content_type=body.content_type or CONTENT_TYPE_OCTET_STREAM,
            )
        if isinstance(body, MultipartBody):
            return self._encode_multipart(body.parts)
        if isinstance(body, KeyValueBody):
            if content_type is ContentType.FORM:
                return self._encode_form(body.values)
            return EncodedBody(
                content=self._to_json(body.values), content_type=CONTENT_TYPE_JSON
            )
        if isinstance(body, ObjectBody):
            return EncodedBody(
                content=self._to_json(body.value), content_type=CONTENT_TYPE_JSON
            )
        raise EncodingError(f"Unsupported body type: {type(body).__name__}")

    def _to_json(self, value: Any) -> bytes:
        try:
            return to_json(value, by_alias=True)
        except (PydanticSerializationError, ValueError) as e:
            raise EncodingError(
                f"Body of type {type(value).__name__} is not JSON serializable: {e}"
            ) from e

    def _encode_form(self, values: Mapping[str, Any]) -> EncodedBody:
        pairs: list[tuple[str, str]] = []
        for key, value in values.items():
            if isinstance(value, (list, tuple)):
                pairs.extend((key, _form_value(item)) for item in value)
            elif isinstance(value, (dict, set)):
                raise EncodingError(
                    f"Form field {key!r} must be a scalar or a list of scalars"
                )
            else:
                pairs.append((key, _form_value(value)))
        return EncodedBody(
            content=urlencode(pairs).encode("ascii"), content_type=CONTENT_TYPE_FORM
        )

    def _encode_multipart(self, parts: tuple[MultipartData, ...]) -> EncodedBody:
        rendered = [(_part_headers(part), part.file_data) for part in parts]

        boundary = self._new_boundary()
        while any(
            boundary.encode("ascii") in headers or boundary.encode("ascii") in data
            for headers, data in rendered
        ):
            boundary = self._new_boundary()

        delimiter = b"--" + boundary.encode("ascii")
        chunks: list[bytes] = []
        for headers, data in rendered:
            chunks.extend([delimiter, CRLF, headers, CRLF, data, CRLF])
        chunks.extend([delimiter, b"--", CRLF])

        return EncodedBody(
            content=b"".join(chunks),
            content_type=f"{CONTENT_TYPE_MULTIPART}; boundary={boundary}",
        )

    def _new_boundary(self) -> str:
        return f"{self._boundary_prefix}{uuid.uuid4().hex}"


def decode_key_value(content: bytes, content_type: Optional[str]) -> dict[str, Any]:
    """Inverse of the key-value encodings, mainly useful for echo servers and tests."""
    media_type = (content_type or "").split(";")[0].strip().lower()
    if media_type == CONTENT_TYPE_FORM:
        values: dict[str, Any] = {}
        for key, value in parse_qsl(content.decode("ascii"), keep_blank_values=True):
            if key in values:
                existing = values[key]
                values[key] = (
                    existing + [value] if isinstance(existing, list) else [existing, value]
                )
            else:
                values[key] = value
        return values

    decoded = json.loads(content)
    if not isinstance(decoded, dict):
        raise ValueError("Body is not a key-value object")
    return decoded


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _part_headers(part: MultipartData) -> bytes:
    name = _quote(part.name)
    if not part.file_name:
        disposition = f'Content-Disposition: form-data; name="{name}"'
        lines = [disposition]
        if part.mime_type:
            lines.append(f"Content-Type: {part.mime_type}")
    else:
        disposition = (
            f'Content-Disposition: form-data; name="{name}"; '
            f'filename="{_quote(part.file_name)}"'
        )
        lines = [
            disposition,
            f"Content-Type: {part.mime_type or CONTENT_TYPE_OCTET_STREAM}",
        ]
    return "".join(f"{line}\r\n" for line in lines).encode("utf-8")


def _quote(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace('"', "%22")
        .replace("\r", "%0D")
        .replace("\n", "%0A")
    )
