"""Tests for the title -> collection id index and diagnostics collection."""

from __future__ import annotations

import json

import pytest

from autorewrite.services.collection_index import CollectionIndex
from autorewrite.services.diagnostics import Diagnostics
from autorewrite.shopify.models import RemoteCollection


class TestCollectionIndex:
    def test_lookup_is_normalized(self) -> None:
        index = CollectionIndex.from_records([{"id": 1, "title": "AUDI Exteriér"}, {"title": "no id"}, "junk"])
        assert index.lookup("audi exterier") == 1
        assert len(index) == 1

    def test_from_file(self, tmp_path) -> None:
        path = tmp_path / "collections-map.json"
        path.write_text(json.dumps([{"id": "7", "title": "BMW"}]), encoding="utf-8")
        assert CollectionIndex.from_file(str(path)).lookup("BMW") == 7

    def test_missing_or_broken_file_is_empty(self, tmp_path) -> None:
        broken = tmp_path / "broken.json"
        broken.write_text("{", encoding="utf-8")
        assert len(CollectionIndex.from_file(str(tmp_path / "missing.json"))) == 0
        assert len(CollectionIndex.from_file(str(broken))) == 0
        assert len(CollectionIndex.from_file(None)) == 0

    def test_to_records(self) -> None:
        records = CollectionIndex.to_records([RemoteCollection(id=3, title="AUDI", image_src="x")])
        assert records == [{"id": 3, "title": "AUDI"}]


class TestDiagnostics:
    @pytest.mark.asyncio
    async def test_best_effort_records_and_swallows(self) -> None:
        diagnostics = Diagnostics()

        async def fail():
            raise ValueError("nope")

        assert await diagnostics.best_effort("image:AUDI", fail()) is None
        assert diagnostics.as_list() == [{"operation": "image:AUDI", "error": "ValueError: nope"}]

    @pytest.mark.asyncio
    async def test_best_effort_returns_result(self) -> None:
        async def ok():
            return 5

        assert await Diagnostics().best_effort("x", ok()) == 5

    def test_extend(self) -> None:
        a, b = Diagnostics(), Diagnostics()
        b.record("attach:1", "boom")
        a.extend(b)
        assert len(a) == 1
