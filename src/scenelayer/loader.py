"""SceneLayerLoader — drive a ContentSource into a SceneTree.

The descriptor is fetched once and tells the loader the page capacity.
Node pages are then fetched on demand or in bulk and merged into the
tree. A page that fails to load is logged and recorded in
``failed_pages``; pages already merged are unaffected.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Iterable

from loguru import logger

from scenelayer.config import Settings, open_source
from scenelayer.errors import SceneLayerError
from scenelayer.models import LayerDescriptor, LayerMetadata, NodePage, NodeRecord
from scenelayer.paging import page_count, page_of
from scenelayer.sources.base import ContentSource
from scenelayer.tree import SceneTree

DEFAULT_CONCURRENCY = 8


class SceneLayerLoader:
    """Session over one scene layer.

    Args:
        source: Archive or REST content source.
        tree: Arena to merge into; a new one is created if omitted.
        concurrency: Default cap on concurrent page fetches in aload_*.
    """

    def __init__(
        self,
        source: ContentSource,
        tree: SceneTree | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self.source = source
        self.tree = tree if tree is not None else SceneTree()
        self.descriptor: LayerDescriptor | None = None
        self.loaded_pages: set[int] = set()
        self.failed_pages: dict[int, SceneLayerError] = {}
        self.concurrency = concurrency
        # In-flight on-demand page fetches, shared by concurrent aensure_node calls
        self._page_tasks: dict[int, asyncio.Task] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "SceneLayerLoader":
        """Open the configured source and wrap it in a loader."""
        return cls(open_source(settings), concurrency=settings.max_concurrent_pages)

    @property
    def nodes_per_page(self) -> int:
        return self._require_descriptor().nodes_per_page

    # -- sync ---------------------------------------------------------------

    def load_descriptor(self) -> LayerDescriptor:
        if self.descriptor is None:
            self._require_sync()
            self._set_descriptor(self.source.fetch_descriptor())
        return self.descriptor

    def load_metadata(self) -> LayerMetadata:
        self._require_sync()
        return self.source.fetch_metadata()

    def load_page(self, page_number: int) -> NodePage:
        """Fetch one page and merge it. Errors propagate to the caller."""
        self._require_sync()
        self._require_descriptor()
        page = self.source.fetch_node_page(page_number)
        self._merge(page_number, page)
        return page

    def load_pages(self, page_numbers: Iterable[int]) -> int:
        """Load several pages, isolating failures. Returns pages merged."""
        merged = 0
        for number in page_numbers:
            try:
                self.load_page(number)
            except SceneLayerError as e:
                self._record_failure(number, e)
            else:
                merged += 1
        return merged

    def load_all(self) -> int:
        """Load every node page the source knows about."""
        self.load_descriptor()
        if _lists_pages(self.source):
            numbers = self.source.node_page_numbers()
        else:
            numbers = self._pages_from_metadata(self.load_metadata())
        return self.load_pages(numbers)

    def ensure_node(self, index: int) -> NodeRecord:
        """Return node ``index``, fetching its page first if needed.

        Raises:
            KeyError: The owning page loaded but does not contain the node.
        """
        self.load_descriptor()
        node = self.tree.get(index)
        if node is None:
            number = page_of(index, self.nodes_per_page)
            if number not in self.loaded_pages:
                self.load_page(number)
            node = self._loaded(index)
        return node

    # -- async --------------------------------------------------------------

    async def aload_descriptor(self) -> LayerDescriptor:
        if self.descriptor is None:
            self._set_descriptor(await _resolve(self.source.fetch_descriptor()))
        return self.descriptor

    async def aload_metadata(self) -> LayerMetadata:
        return await _resolve(self.source.fetch_metadata())

    async def aload_page(self, page_number: int) -> NodePage:
        self._require_descriptor()
        page = await _resolve(self.source.fetch_node_page(page_number))
        self._merge(page_number, page)
        return page

    async def aload_pages(
        self,
        page_numbers: Iterable[int],
        concurrency: int | None = None,
    ) -> int:
        """Fetch pages concurrently and merge them as they complete."""
        if concurrency is None:
            concurrency = self.concurrency
        if concurrency <= 0:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self._require_descriptor()
        semaphore = asyncio.Semaphore(concurrency)

        async def fetch_one(number: int) -> bool:
            async with semaphore:
                try:
                    await self.aload_page(number)
                except SceneLayerError as e:
                    self._record_failure(number, e)
                    return False
                return True

        results = await asyncio.gather(*(fetch_one(n) for n in page_numbers))
        return sum(results)

    async def aload_all(self, concurrency: int | None = None) -> int:
        """Load every node page, sizing the page range from metadata.json."""
        await self.aload_descriptor()
        if _lists_pages(self.source):
            numbers = self.source.node_page_numbers()
        else:
            numbers = self._pages_from_metadata(await self.aload_metadata())
        return await self.aload_pages(numbers, concurrency=concurrency)

    async def aensure_node(self, index: int) -> NodeRecord:
        await self.aload_descriptor()
        node = self.tree.get(index)
        if node is None:
            number = page_of(index, self.nodes_per_page)
            if number not in self.loaded_pages:
                await self._aload_page_once(number)
            node = self._loaded(index)
        return node

    async def _aload_page_once(self, page_number: int) -> None:
        task = self._page_tasks.get(page_number)
        if task is None:
            task = asyncio.ensure_future(self.aload_page(page_number))
            self._page_tasks[page_number] = task
            task.add_done_callback(lambda _t: self._page_tasks.pop(page_number, None))
        await task

    # -- helpers ------------------------------------------------------------

    def _set_descriptor(self, descriptor: LayerDescriptor) -> None:
        self.descriptor = descriptor
        extent = descriptor.full_extent
        if extent is not None and not extent.is_well_formed():
            logger.warning(f"Layer {descriptor.id} has a malformed full extent: {extent}")
        logger.info(
            f"Scene layer {descriptor.id} '{descriptor.name}': "
            f"{descriptor.nodes_per_page} nodes/page, root {descriptor.root_index}"
        )

    def _require_descriptor(self) -> LayerDescriptor:
        if self.descriptor is None:
            raise RuntimeError("Layer descriptor must be loaded before node pages")
        return self.descriptor

    def _require_sync(self) -> None:
        if self.source.is_async:
            raise TypeError(
                f"{type(self.source).__name__} is asynchronous; use the aload_* methods"
            )

    def _merge(self, page_number: int, page: NodePage) -> None:
        count = self.tree.insert(page)
        self.loaded_pages.add(page_number)
        self.failed_pages.pop(page_number, None)
        logger.debug(f"Merged node page {page_number} ({count} nodes)")

    def _record_failure(self, page_number: int, error: SceneLayerError) -> None:
        self.failed_pages[page_number] = error
        logger.warning(f"Skipping node page {page_number}: {error}")

    def _loaded(self, index: int) -> NodeRecord:
        node = self.tree.get(index)
        if node is None:
            raise KeyError(f"Node {index} missing from page {page_of(index, self.nodes_per_page)}")
        return node

    def _pages_from_metadata(self, metadata: LayerMetadata) -> list[int]:
        if metadata.node_count is None:
            raise ValueError("Layer metadata carries no node count; pass page numbers explicitly")
        return list(range(page_count(metadata.node_count, self.nodes_per_page)))


def _lists_pages(source: ContentSource) -> bool:
    return callable(getattr(source, "node_page_numbers", None))


async def _resolve(result):
    """Await ``result`` if the source handed back a coroutine."""
    if inspect.isawaitable(result):
        return await result
    return result
