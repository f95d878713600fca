"""Fixtures shared by the scene layer tests."""

from __future__ import annotations

import copy
import json
from pathlib import Path

import pytest

from tests.scenelayer.builders import DESCRIPTOR, gz_json, node, write_slpk


@pytest.fixture
def descriptor_doc() -> dict:
    return copy.deepcopy(DESCRIPTOR)


@pytest.fixture
def slpk(tmp_path, descriptor_doc) -> Path:
    """Three-node layer split across two pages of capacity 2."""
    return write_slpk(tmp_path / "layer.slpk", {
        "3dSceneLayer.json.gz": gz_json(descriptor_doc),
        "metadata.json": json.dumps({"I3SVersion": "1.7", "nodeCount": 3}).encode(),
        "nodepages/0.json.gz": gz_json({"nodes": [node(0, None, [1, 2]), node(1, 0)]}),
        "nodepages/1.json.gz": gz_json({"nodes": [node(2, 0)]}),
    })
