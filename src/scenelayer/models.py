"""Pydantic models for I3S scene layer documents.

Documents use camelCase keys. Unknown keys are kept rather than
rejected so newer I3S revisions still load, and every default value a
record relies on is declared on its field below.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Global node indices are never negative
NodeIndex = Annotated[int, Field(ge=0)]


class I3SModel(BaseModel):
    """Shared config: camelCase aliases, extra keys allowed, immutable."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Layer descriptor (3dSceneLayer.json)
# ---------------------------------------------------------------------------

class SpatialReference(I3SModel):
    wkid: int | None = None
    latest_wkid: int | None = None
    vcs_wkid: int | None = None
    latest_vcs_wkid: int | None = None
    wkt: str = ""


class FullExtent(I3SModel):
    """Axis-aligned bounds of the whole layer.

    Values are kept exactly as delivered. ``-1`` on every axis is what
    the format writes when the extent is unknown.
    """

    xmin: float = -1.0
    xmax: float = -1.0
    ymin: float = -1.0
    ymax: float = -1.0
    zmin: float = -1.0
    zmax: float = -1.0
    spatial_reference: SpatialReference | None = None

    def is_well_formed(self) -> bool:
        return (
            self.xmin <= self.xmax
            and self.ymin <= self.ymax
            and self.zmin <= self.zmax
        )


class HeightModelInfo(I3SModel):
    height_model: str = ""
    vert_crs: str = Field("", alias="vertCRS")
    height_unit: str = ""


class Store(I3SModel):
    profile: str = ""
    version: str = ""
    root_node: str = "./nodes/root"
    id: str = ""
    extent: list[float] | None = None
    index_crs: str = Field("", alias="indexCRS")
    vertex_crs: str = Field("", alias="vertexCRS")
    normal_reference_frame: str = ""


class NodePageDefinition(I3SModel):
    """Paging parameters: page capacity, LOD metric, root node index."""

    nodes_per_page: int = Field(64, gt=0)
    lod_selection_metric_type: str = ""
    root_index: int = Field(0, ge=0)


class TextureSetFormat(I3SModel):
    name: str
    format: str


class TextureSetDefinition(I3SModel):
    formats: list[TextureSetFormat] = Field(default_factory=list)
    atlas: bool | None = None

    def has_compressed_textures(self) -> bool:
        """A set ships compressed textures when it lists a second format."""
        if len(self.formats) == 1:
            return False
        if len(self.formats) == 2:
            return True
        raise ValueError(f"Invalid number of texture formats: {len(self.formats)}")


class LayerDescriptor(I3SModel):
    """Top-level layer document, fetched once per session."""

    id: int = 0
    layer_type: str = ""
    name: str = ""
    alias: str = ""
    version: str = ""
    description: str = ""
    copyright_text: str = ""
    href: str = ""
    capabilities: list[str] = Field(default_factory=list)
    store: Store = Field(default_factory=Store)
    spatial_reference: SpatialReference | None = None
    full_extent: FullExtent | None = None
    height_model_info: HeightModelInfo | None = None
    node_pages: NodePageDefinition = Field(default_factory=NodePageDefinition)
    # Descriptive schema records; carried through untouched.
    geometry_definitions: list[dict[str, Any]] = Field(default_factory=list)
    material_definitions: list[dict[str, Any]] = Field(default_factory=list)
    texture_set_definitions: list[TextureSetDefinition] = Field(default_factory=list)

    @property
    def nodes_per_page(self) -> int:
        return self.node_pages.nodes_per_page

    @property
    def root_index(self) -> int:
        return self.node_pages.root_index


class LayerMetadata(I3SModel):
    """metadata.json: format version and total node count."""

    i3s_version: str = Field("", alias="I3SVersion")
    node_count: int | None = Field(None, ge=0)


# ---------------------------------------------------------------------------
# Node pages (nodepages/{n}.json)
# ---------------------------------------------------------------------------

class OrientedBoundingBox(I3SModel):
    """Center, half extents, and an optional rotation quaternion."""

    center: tuple[float, float, float]
    half_size: tuple[float, float, float]
    quaternion: tuple[float, float, float, float] | None = Field(
        None,
        validation_alias=AliasChoices("quaternion", "quanternion"),
    )

    @property
    def is_axis_aligned(self) -> bool:
        return self.quaternion is None


class MeshMaterial(I3SModel):
    definition: int = 0
    resource: int = 0
    texel_count_hint: int = -1


class MeshGeometry(I3SModel):
    definition: int = 0
    resource: int = 0
    vertex_count: int = 0
    feature_count: int = 0


class MeshAttribute(I3SModel):
    resource: int = 0


class MeshReference(I3SModel):
    """Pointers to a node's geometry/texture/attribute resources."""

    material: MeshMaterial = Field(default_factory=MeshMaterial)
    geometry: MeshGeometry = Field(default_factory=MeshGeometry)
    attribute: MeshAttribute = Field(default_factory=MeshAttribute)


class NodeRecord(I3SModel):
    """One node of the scene graph, addressed by its global index."""

    index: int = Field(ge=0)
    obb: OrientedBoundingBox
    children: list[NodeIndex] = Field(default_factory=list)
    parent_index: NodeIndex | None = None
    lod_threshold: float | None = None
    mesh: MeshReference | None = None

    def is_root(self) -> bool:
        return self.parent_index is None

    def is_leaf(self) -> bool:
        return not self.children


class NodePage(I3SModel):
    nodes: list[NodeRecord] = Field(default_factory=list)
