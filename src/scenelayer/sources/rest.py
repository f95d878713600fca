"""RestSource — read a scene layer from a live I3S SceneServer.

Fetches are coroutines on a shared ``httpx.AsyncClient``. Independent
fetches may run concurrently and complete in any order. There is no
retry or timeout policy beyond what the caller configures on the client.
"""

from __future__ import annotations

import httpx
from loguru import logger

from scenelayer.errors import HttpStatusError, TransportError
from scenelayer.models import LayerDescriptor, LayerMetadata, NodePage
from scenelayer.sources.base import ContentSource, ModelT, parse_document

DEFAULT_TIMEOUT = 30.0


class RestSource(ContentSource):
    """Content source backed by a SceneServer REST endpoint.

    Args:
        base_url: Service root, e.g. ``https://host/arcgis/rest/services/X/SceneServer``.
        layer_id: Layer number under ``layers/``.
        client: Optional pre-built client; the source does not close it.
        timeout: Request timeout in seconds for a client built here.
    """

    is_async = True

    def __init__(
        self,
        base_url: str,
        layer_id: int = 0,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.layer_id = layer_id
        if client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    def descriptor_path(self) -> str:
        return f"layers/{self.layer_id}"

    def node_page_path(self, page_number: int) -> str:
        return f"layers/{self.layer_id}/nodepages/{page_number}"

    def metadata_path(self) -> str:
        return "metadata.json"

    async def fetch_descriptor(self) -> LayerDescriptor:
        return await self._get(self.descriptor_path(), LayerDescriptor)

    async def fetch_node_page(self, page_number: int) -> NodePage:
        return await self._get(self.node_page_path(page_number), NodePage)

    async def fetch_metadata(self) -> LayerMetadata:
        return await self._get(self.metadata_path(), LayerMetadata)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def __enter__(self):
        raise TypeError("RestSource is asynchronous; use 'async with'")

    async def __aenter__(self) -> "RestSource":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get(self, path: str, model: type[ModelT]) -> ModelT:
        url = self.base_url + path
        try:
            resp = await self._client.get(url, params={"f": "json"})
        except httpx.TransportError as e:
            logger.warning(f"Scene layer request failed: {url}: {e}")
            raise TransportError(f"{url}: {e}") from e
        if not resp.is_success:
            raise HttpStatusError(resp.status_code, url)
        logger.debug(f"Fetched {url} ({len(resp.content)} bytes)")
        return parse_document(resp.content, model, path)
