from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Callable, Optional

from pydantic import TypeAdapter, ValidationError

from .models.errors import DecodingError
from .models.responses import EmptyResponse


@lru_cache(maxsize=256)
def _cached_type_adapter(return_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(return_type)


def _type_adapter(return_type: Any) -> TypeAdapter[Any]:
    try:
        return _cached_type_adapter(return_type)
    except TypeError:
        # unhashable annotations (Annotated with dict metadata, ...)
        return TypeAdapter(return_type)


class ResponseDecoder(ABC):
    """Turns the raw bytes of a successful response into ``return_type``."""

    @abstractmethod
    def decode(self, content: bytes, return_type: Any) -> Any:
        """Decode ``content``; raise :class:`DecodingError` when it does not fit."""


class JSONDecoder(ResponseDecoder):
    """Default decoder: JSON validated into the requested type with pydantic.

    Args:
        strict: Disable pydantic's lax coercions (``"1"`` into ``int`` and
            the like).
        loads: Custom JSON loader. When given, the payload is parsed with it
            and the resulting Python object is validated, which lets callers
            pre-process values such as non-ISO date strings.

    ``bytes`` and ``str`` return types bypass JSON entirely, and
    :class:`EmptyResponse` ignores the body.
    """

    def __init__(
        self,
        *,
        strict: bool = False,
        loads: Optional[Callable[[bytes], Any]] = None,
    ) -> None:
        self._strict = strict
        self._loads = loads

    def decode(self, content: bytes, return_type: Any) -> Any:
        if return_type is bytes:
            return content
        if return_type is EmptyResponse:
            return EmptyResponse()
        if return_type is str:
            try:
                return content.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodingError(
                    f"Response is not valid UTF-8: {e}",
                    content=content,
                    return_type=return_type,
                ) from e
        if return_type is Any and not content.strip():
            return None

        try:
            if self._loads is not None:
                return _type_adapter(return_type).validate_python(
                    self._loads(content), strict=self._strict
                )
            return _type_adapter(return_type).validate_json(
                content, strict=self._strict
            )
        except (ValidationError, ValueError) as e:
            raise DecodingError(
                f"Failed to decode response as {_type_name(return_type)}: {e}",
                content=content,
                return_type=return_type,
            ) from e


def _type_name(return_type: Any) -> str:
    return getattr(return_type, "__name__", None) or repr(return_type)
