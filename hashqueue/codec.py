"""
Value codecs.

A codec turns queue values into the byte form stored under each position key
and back. Encoding must be deterministic and decoding must return a value
equal to the one encoded, because decoded values are looked up in the
membership set when they are popped.

Every codec carries a ``schema_id`` that is persisted next to the queue so a
region written by one codec is never silently decoded by another.
"""

from __future__ import annotations

import json
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from .exceptions import CodecError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class Codec(Protocol[T]):
    """Behavioral contract for value codecs."""

    schema_id: str
    """Stable identifier of the value encoding, stored with the queue."""

    def encode(self, value: T) -> bytes:
        """Serialize one value."""

    def decode(self, raw: bytes) -> T:
        """Deserialize one value."""


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


class JsonCodec:
    """
    Compact JSON codec for hashable scalar and tuple values.

    JSON arrays decode to tuples, so tuples round-trip exactly and decoded
    values stay usable as set members. Objects decode to ``dict`` and are
    therefore rejected by the membership set on push.
    """

    schema_id = "json"

    def encode(self, value: Any) -> bytes:
        try:
            return json.dumps(value, separators=(",", ":"), sort_keys=True, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise CodecError(f"Failed to serialize value {value!r}: {exc}") from exc

    def decode(self, raw: bytes) -> Any:
        try:
            return _freeze(json.loads(bytes(raw).decode("utf-8")))
        except (UnicodeDecodeError, ValueError) as exc:
            raise CodecError(f"Failed to deserialize data: {exc}") from exc


class ModelCodec(Generic[M]):
    """
    Codec for pydantic models.

    Models must be declared with ``frozen=True`` so instances are hashable.
    The schema tag includes the model's import path, so a region written for
    one model class is rejected when opened with another.
    """

    def __init__(self, model: type[M]) -> None:
        if not model.model_config.get("frozen", False):
            raise TypeError(f"{model.__qualname__} must be frozen to be queued (hashable).")
        self.model = model
        self.schema_id = f"pydantic:{model.__module__}.{model.__qualname__}"

    def encode(self, value: M) -> bytes:
        if not isinstance(value, self.model):
            raise CodecError(
                f"Expected {self.model.__qualname__} instance, got {type(value).__qualname__}."
            )
        return value.model_dump_json().encode("utf-8")

    def decode(self, raw: bytes) -> M:
        try:
            return self.model.model_validate_json(bytes(raw))
        except ValidationError as exc:
            raise CodecError(f"Failed to deserialize data: {exc}") from exc
