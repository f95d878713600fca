"""Error types raised while loading a scene layer.

Content sources never retry; every failure surfaces as one of these so
the caller can decide whether to abort, retry, or skip the resource.
"""

from __future__ import annotations

from dataclasses import dataclass


class SceneLayerError(Exception):
    """Base class for all scene layer errors."""


class ResourceNotFound(SceneLayerError):
    """A named resource is absent from the archive."""

    def __init__(self, resource: str) -> None:
        super().__init__(f"Resource not found: {resource}")
        self.resource = resource


class TransportError(SceneLayerError):
    """Network-level failure (connect, read, protocol)."""


class HttpStatusError(SceneLayerError):
    """The service answered with a non-success status."""

    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"HTTP {status_code} for {url}")
        self.status_code = status_code
        self.url = url


class DecodeFailure(SceneLayerError):
    """Bytes were present but did not decode into the expected record."""

    def __init__(self, resource: str, reason: str) -> None:
        super().__init__(f"Failed to decode {resource}: {reason}")
        self.resource = resource
        self.reason = reason


class TreeError(SceneLayerError):
    """Consistency problem in the currently loaded node arena."""


class NoRoot(TreeError):
    """No loaded node lacks a parent index."""

    def __init__(self) -> None:
        super().__init__("No root node in the loaded nodes")


class MultipleRoots(TreeError):
    """More than one loaded node lacks a parent index."""

    def __init__(self, indices: list[int]) -> None:
        super().__init__(f"Multiple root nodes: {indices}")
        self.indices = indices


@dataclass(frozen=True)
class Pending:
    """Placeholder for a referenced node whose page is not loaded yet."""

    index: int
