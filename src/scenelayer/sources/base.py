"""ContentSource interface and shared document decoding.

A content source hands out the same typed records whether the bytes
come from a packaged archive or a live service. Archive sources answer
synchronously; network sources return coroutines. The loader is written
once against this interface and awaits whatever needs awaiting.
"""

from __future__ import annotations

import gzip
import json
import zlib
from abc import ABC, abstractmethod
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from scenelayer.errors import DecodeFailure
from scenelayer.models import LayerDescriptor, LayerMetadata, NodePage

_GZIP_MAGIC = b"\x1f\x8b"

ModelT = TypeVar("ModelT", bound=BaseModel)


def decompress(raw: bytes, resource: str) -> bytes:
    """Gunzip ``raw`` if it carries the gzip magic, else return it as is."""
    if not raw.startswith(_GZIP_MAGIC):
        return raw
    try:
        return gzip.decompress(raw)
    except (OSError, EOFError, zlib.error) as e:
        raise DecodeFailure(resource, f"bad gzip stream: {e}") from e


def parse_document(raw: bytes, model: type[ModelT], resource: str) -> ModelT:
    """Decode a (possibly gzipped) JSON document into ``model``."""
    data = decompress(raw, resource)
    try:
        payload = json.loads(data)
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeFailure(resource, f"invalid JSON: {e}") from e
    return validate_document(payload, model, resource)


def validate_document(payload: Any, model: type[ModelT], resource: str) -> ModelT:
    """Validate an already-parsed JSON value against ``model``."""
    if not isinstance(payload, dict):
        raise DecodeFailure(resource, f"expected a JSON object, got {type(payload).__name__}")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise DecodeFailure(resource, str(e)) from e


class ContentSource(ABC):
    """Provider of layer descriptor, metadata and node pages.

    Subclasses set ``is_async`` when their fetch methods return
    coroutines.
    """

    is_async: bool = False

    @abstractmethod
    def fetch_descriptor(self) -> LayerDescriptor:
        """Fetch and decode the layer descriptor."""

    @abstractmethod
    def fetch_node_page(self, page_number: int) -> NodePage:
        """Fetch and decode node page ``page_number``."""

    @abstractmethod
    def fetch_metadata(self) -> LayerMetadata:
        """Fetch and decode the layer's metadata document."""

    def close(self) -> None:
        """Release any underlying handle."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
