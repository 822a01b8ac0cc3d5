"""Tests for attaching a product to every collection of an ensured branch."""

from __future__ import annotations

import pytest

from autorewrite.services.collection_attacher import CollectionAttacher
from autorewrite.services.diagnostics import Diagnostics
from autorewrite.taxonomy.models import EnsuredBranchNode
from tests.fakes import FakeCollectionStore


def branch() -> list[EnsuredBranchNode]:
    return [
        EnsuredBranchNode(collection_id=1, title="AUDI", level=0),
        EnsuredBranchNode(collection_id=2, title="AUDI Exteriér", level=1),
    ]


class TestAttach:
    @pytest.mark.asyncio
    async def test_attaches_to_every_node(self, collections: FakeCollectionStore) -> None:
        outcomes = await CollectionAttacher(collections).attach("42", branch())

        assert [o.status for o in outcomes] == ["attached", "attached"]
        assert collections.collects == {("42", 1), ("42", 2)}

    @pytest.mark.asyncio
    async def test_second_attach_is_a_noop(self, collections: FakeCollectionStore) -> None:
        attacher = CollectionAttacher(collections)
        await attacher.attach("42", branch())

        outcomes = await attacher.attach("42", branch())

        assert [o.status for o in outcomes] == ["already_member", "already_member"]
        assert len(collections.collects) == 2

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, collections: FakeCollectionStore) -> None:
        outcomes = await CollectionAttacher(collections, dry_run=True).attach("42", branch())

        assert [o.status for o in outcomes] == ["dry_run", "dry_run"]
        assert collections.collects == set()

    @pytest.mark.asyncio
    async def test_disabled_does_nothing(self, collections: FakeCollectionStore) -> None:
        assert await CollectionAttacher(collections, enabled=False).attach("42", branch()) == []
        assert collections.collects == set()

    @pytest.mark.asyncio
    async def test_failures_are_recorded_per_node(self, collections: FakeCollectionStore) -> None:
        collections.fail_collect_exists = True
        diagnostics = Diagnostics()

        outcomes = await CollectionAttacher(collections).attach("42", branch(), diagnostics)

        assert [o.status for o in outcomes] == ["failed", "failed"]
        assert [d["operation"] for d in diagnostics.as_list()] == ["attach:1", "attach:2"]
