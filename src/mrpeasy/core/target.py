"""Decode targets: where a response body ends up."""

from __future__ import annotations
import json
from dataclasses import dataclass
from typing import Any, Callable, Generic, Protocol, TypeVar, Union, runtime_checkable

from .model import BodyReadError, DecodingError

T = TypeVar("T")


@runtime_checkable
class ByteSink(Protocol):
    """Anything with a binary ``write``, e.g. a file opened in "wb" mode or BytesIO."""

    def write(self, data: bytes, /) -> Any:
        ...


@dataclass(slots=True)
class Raw:
    """Copy the response body, unparsed, into ``sink``."""
    sink: ByteSink


@dataclass(slots=True)
class Typed(Generic[T]):
    """Decode the response body as JSON into :attr:`value`.

    ``convert`` is applied to the decoded JSON before it is stored. An empty
    body leaves :attr:`value` untouched.
    """
    convert: Callable[[Any], T] | None = None
    value: T | None = None


DecodeTarget = Union[Raw, Typed]


def write_chunk(target: Raw, chunk: bytes) -> None:
    """Write one body chunk into a Raw sink; any sink failure is a BodyReadError."""
    try:
        target.sink.write(chunk)
    except Exception as e:
        raise BodyReadError(f"could not copy response body to sink: {e}") from e


def decode_json(target: Typed, body: bytes) -> None:
    """Populate ``target`` from a fully read body."""
    if not body.strip():
        return      # 204-style responses
    try:
        decoded = json.loads(body)
        target.value = target.convert(decoded) if target.convert is not None else decoded
    except (ValueError, TypeError, KeyError) as e:       # JSONDecodeError is a ValueError
        raise DecodingError(f"cannot decode response body: {e}") from e
