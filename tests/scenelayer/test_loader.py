"""Tests for SceneLayerLoader over both archive and REST sources."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from scenelayer.errors import DecodeFailure, HttpStatusError, Pending, ResourceNotFound
from scenelayer.loader import SceneLayerLoader
from scenelayer.sources.archive import ArchiveSource
from scenelayer.sources.rest import RestSource

from tests.scenelayer.builders import DESCRIPTOR, gz_json, node, write_slpk

BASE = "https://example.com/SceneServer"


def _rest_loader(pages: dict[int, dict], metadata: dict | None = None, delays=None) -> SceneLayerLoader:
    """Loader over a mocked SceneServer serving ``pages`` by page number."""
    delays = delays or {}

    async def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/metadata.json"):
            if metadata is None:
                return httpx.Response(404)
            return httpx.Response(200, json=metadata)
        if "/nodepages/" in path:
            number = int(path.rsplit("/", 1)[1])
            await asyncio.sleep(delays.get(number, 0))
            if number not in pages:
                return httpx.Response(404)
            return httpx.Response(200, content=json.dumps(pages[number]))
        return httpx.Response(200, json=DESCRIPTOR)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SceneLayerLoader(RestSource(BASE, client=client))


@pytest.mark.unit
class TestArchiveLoader:
    """Synchronous loading from an .slpk package."""

    def test_load_all(self, slpk):
        with ArchiveSource(slpk) as src:
            loader = SceneLayerLoader(src)
            assert loader.load_all() == 2
        tree = loader.tree
        assert len(tree) == 3
        assert tree.root().index == 0
        assert [c.index for c in tree.children_of(tree.root())] == [1, 2]
        assert loader.loaded_pages == {0, 1}

    def test_descriptor_fetched_once(self, slpk):
        with ArchiveSource(slpk) as src:
            loader = SceneLayerLoader(src)
            first = loader.load_descriptor()
            assert loader.load_descriptor() is first
            assert loader.nodes_per_page == 2

    def test_page_requires_descriptor(self, slpk):
        with ArchiveSource(slpk) as src:
            with pytest.raises(RuntimeError):
                SceneLayerLoader(src).load_page(0)

    def test_ensure_node_fetches_owning_page(self, slpk):
        with ArchiveSource(slpk) as src:
            loader = SceneLayerLoader(src)
            loader.load_descriptor()
            loader.load_page(0)
            root = loader.tree.root()
            assert loader.tree.children_of(root)[1] == Pending(2)
            assert loader.ensure_node(2).parent_index == 0
            assert loader.loaded_pages == {0, 1}

    def test_ensure_node_missing_from_page(self, slpk):
        with ArchiveSource(slpk) as src:
            loader = SceneLayerLoader(src)
            with pytest.raises(KeyError):
                loader.ensure_node(3)

    def test_ensure_node_skips_loaded_page(self, slpk):
        """A node absent from an already merged page is not refetched."""
        with ArchiveSource(slpk) as src:
            loader = SceneLayerLoader(src)
            loader.load_all()
            with pytest.raises(KeyError):
                loader.ensure_node(3)
        assert loader.tree.conflicts == 0
        assert len(loader.tree) == 3

    def test_corrupt_page_isolated(self, tmp_path, descriptor_doc):
        path = write_slpk(tmp_path / "partial.slpk", {
            "3dSceneLayer.json.gz": gz_json(descriptor_doc),
            "nodepages/0.json.gz": gz_json({"nodes": [node(0, None, [1, 2]), node(1, 0)]}),
            "nodepages/1.json.gz": b"\x1f\x8bnot gzip at all",
        })
        with ArchiveSource(path) as src:
            loader = SceneLayerLoader(src)
            assert loader.load_all() == 1
        assert isinstance(loader.failed_pages[1], DecodeFailure)
        assert loader.tree.indices() == [0, 1]
        assert loader.tree.root().index == 0
        assert loader.tree.pending_pages(loader.nodes_per_page) == [1]

    def test_missing_page_recorded(self, slpk):
        with ArchiveSource(slpk) as src:
            loader = SceneLayerLoader(src)
            loader.load_descriptor()
            assert loader.load_pages([0, 4]) == 1
        assert isinstance(loader.failed_pages[4], ResourceNotFound)

    def test_async_api_over_archive(self, slpk):
        async def go(loader):
            await loader.aload_descriptor()
            return await loader.aload_pages([0, 1])

        with ArchiveSource(slpk) as src:
            loader = SceneLayerLoader(src)
            assert asyncio.run(go(loader)) == 2
        assert len(loader.tree) == 3


@pytest.mark.unit
class TestRestLoader:
    """Asynchronous loading from a SceneServer."""

    def test_sync_api_rejected(self):
        loader = _rest_loader({})
        with pytest.raises(TypeError):
            loader.load_descriptor()

    def test_aload_all_from_metadata(self):
        loader = _rest_loader(
            {0: {"nodes": [node(0, None, [1, 2]), node(1, 0)]}, 1: {"nodes": [node(2, 0)]}},
            metadata={"I3SVersion": "1.7", "nodeCount": 3},
            delays={0: 0.02},
        )
        assert asyncio.run(loader.aload_all(concurrency=2)) == 2
        assert loader.tree.root().index == 0
        assert loader.tree.check_links() == []

    def test_aload_all_without_node_count(self):
        loader = _rest_loader({}, metadata={"I3SVersion": "1.7"})
        with pytest.raises(ValueError):
            asyncio.run(loader.aload_all())

    def test_failed_page_does_not_affect_others(self):
        loader = _rest_loader({0: {"nodes": [node(0, None, [1, 2]), node(1, 0)]}})

        async def go():
            await loader.aload_descriptor()
            return await loader.aload_pages([0, 1])

        assert asyncio.run(go()) == 1
        assert isinstance(loader.failed_pages[1], HttpStatusError)
        assert loader.tree.indices() == [0, 1]

    def test_aensure_node(self):
        loader = _rest_loader({1: {"nodes": [node(2, 0)]}})
        found = asyncio.run(loader.aensure_node(2))
        assert found.index == 2
        assert loader.loaded_pages == {1}

    def test_concurrent_aensure_node_fetches_page_once(self):
        requests = []

        async def handler(request: httpx.Request) -> httpx.Response:
            if "/nodepages/" in request.url.path:
                requests.append(request.url.path)
                await asyncio.sleep(0.02)
                return httpx.Response(200, json={"nodes": [node(2, 0), node(3, 0)]})
            return httpx.Response(200, json=DESCRIPTOR)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        loader = SceneLayerLoader(RestSource(BASE, client=client))

        async def go():
            await loader.aload_descriptor()
            return await asyncio.gather(loader.aensure_node(2), loader.aensure_node(3))

        found = asyncio.run(go())
        assert [n.index for n in found] == [2, 3]
        assert len(requests) == 1
        assert loader.tree.conflicts == 0

    def test_aensure_node_skips_loaded_page(self):
        loader = _rest_loader({1: {"nodes": [node(2, 0)]}})

        async def go():
            await loader.aensure_node(2)
            await loader.aensure_node(3)

        with pytest.raises(KeyError):
            asyncio.run(go())
        assert loader.tree.conflicts == 0

    def test_page_before_descriptor_rejected(self):
        loader = _rest_loader({0: {"nodes": [node(0)]}})
        with pytest.raises(RuntimeError):
            asyncio.run(loader.aload_page(0))

    def test_cancelled_fetch_never_inserts(self):
        loader = _rest_loader({0: {"nodes": [node(0)]}}, delays={0: 1.0})

        async def go():
            await loader.aload_descriptor()
            task = asyncio.create_task(loader.aload_page(0))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(go())
        assert len(loader.tree) == 0
        assert loader.loaded_pages == set()

    def test_invalid_concurrency(self):
        loader = _rest_loader({})

        async def go():
            await loader.aload_descriptor()
            await loader.aload_pages([0], concurrency=0)

        with pytest.raises(ValueError):
            asyncio.run(go())
