"""I3S scene layer loading — packaged .slpk archives and live SceneServers.

Reads the layer descriptor and paged node lists from either source and
rebuilds the node tree in a SceneTree arena.
"""

from scenelayer.errors import (
    DecodeFailure,
    HttpStatusError,
    MultipleRoots,
    NoRoot,
    Pending,
    ResourceNotFound,
    SceneLayerError,
    TransportError,
)
from scenelayer.loader import SceneLayerLoader
from scenelayer.models import LayerDescriptor, NodePage, NodeRecord
from scenelayer.sources import ArchiveSource, ContentSource, RestSource
from scenelayer.tree import SceneTree

__all__ = [
    "ArchiveSource",
    "ContentSource",
    "DecodeFailure",
    "HttpStatusError",
    "LayerDescriptor",
    "MultipleRoots",
    "NoRoot",
    "NodePage",
    "NodeRecord",
    "Pending",
    "ResourceNotFound",
    "RestSource",
    "SceneLayerError",
    "SceneLayerLoader",
    "SceneTree",
    "TransportError",
]
