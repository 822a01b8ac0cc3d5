"""Tests for the webhook enrichment pass over in-memory stores."""

from __future__ import annotations

import pytest

from autorewrite.services.ai_service import AIResponseError
from autorewrite.services.context import EnrichmentContext
from autorewrite.services.enrichment_pipeline import (
    InvalidWebhookPayload,
    PipelineStatus,
    handle_product_webhook,
)
from tests.fakes import FakeAI, FakeCollectionStore, FakeProductStore, ai_option, make_product, make_rewrite

PAYLOAD = {"id": 1, "title": "Mirror covers for Audi A4"}


def build_context(
    taxonomy,
    product=None,
    ai=None,
    collections=None,
    attach_enabled=True,
    dry_run=False,
) -> EnrichmentContext:
    return EnrichmentContext(
        products=FakeProductStore(product if product is not None else make_product()),
        collections=collections or FakeCollectionStore(),
        ai=ai or FakeAI(
            rewrite=make_rewrite(options=[ai_option("Farba", 1, ["čierna", "biela"])]),
            picks=["kryty-zrkadiel"],
        ),
        taxonomy=taxonomy,
        attach_enabled=attach_enabled,
        dry_run=dry_run,
    )


class TestEarlyExits:
    @pytest.mark.asyncio
    async def test_missing_id_is_rejected(self, taxonomy) -> None:
        with pytest.raises(InvalidWebhookPayload):
            await handle_product_webhook({}, build_context(taxonomy))

    @pytest.mark.asyncio
    async def test_product_not_ready(self, taxonomy) -> None:
        context = build_context(taxonomy)
        context.products.product = None

        result = await handle_product_webhook(PAYLOAD, context)

        assert result.status == PipelineStatus.NOT_READY
        assert context.products.calls == []

    @pytest.mark.asyncio
    async def test_already_processed_writes_nothing(self, taxonomy) -> None:
        context = build_context(taxonomy, product=make_product(processed=True))

        result = await handle_product_webhook(PAYLOAD, context)

        assert result.status == PipelineStatus.ALREADY_PROCESSED
        assert context.products.calls == []
        assert context.ai.rewrite_prompts == []
        assert context.collections.created == []


class TestFullRun:
    @pytest.mark.asyncio
    async def test_writes_in_order_with_processed_flag_last(self, taxonomy) -> None:
        context = build_context(taxonomy)

        result = await handle_product_webhook(PAYLOAD, context)

        assert result.status == PipelineStatus.PROCESSED
        assert context.products.call_names == [
            "update_product_fields",
            "update_option_names",
            "update_variant_options",
            "update_variant_options",
            "set_processed_flag",
        ]

    @pytest.mark.asyncio
    async def test_product_fields_and_translated_variants(self, taxonomy) -> None:
        context = build_context(taxonomy)

        result = await handle_product_webhook(PAYLOAD, context)

        _, gid, title, description, tags = context.products.calls[0]
        assert gid == "gid://shopify/Product/1"
        assert title == "Kryty zrkadiel Audi – čierne"
        assert "<strong>🚗 Výhody:</strong>" in description
        assert tags == ["Audi", "Audi Exteriér", "A4"]
        assert [u.option_values for u in result.variant_updates] == [{1: "čierna"}, {1: "biela"}]

    @pytest.mark.asyncio
    async def test_collections_ensured_and_attached(self, taxonomy) -> None:
        context = build_context(taxonomy)

        result = await handle_product_webhook(PAYLOAD, context)

        assert result.classification.leaf_slug_picks == ["kryty-zrkadiel"]
        assert context.collections.created == ["AUDI", "AUDI Exteriér", "AUDI Kryty zrkadiel"]
        expected = {("1", context.collections.id_of(t)) for t in context.collections.created}
        assert context.collections.collects == expected
        assert [a.status for a in result.attached] == ["attached"] * 3
        assert result.diagnostics == []

    @pytest.mark.asyncio
    async def test_unchanged_variants_are_not_written(self, taxonomy) -> None:
        ai = FakeAI(rewrite=make_rewrite(options=[ai_option("Color", 1, ["Black", "White"])]), picks=["kryty-zrkadiel"])
        context = build_context(taxonomy, ai=ai)

        await handle_product_webhook(PAYLOAD, context)

        assert "update_variant_options" not in context.products.call_names
        assert context.products.call_names[-1] == "set_processed_flag"

    @pytest.mark.asyncio
    async def test_no_option_names_skips_rename(self, taxonomy) -> None:
        ai = FakeAI(rewrite=make_rewrite(options=[]), picks=["kryty-zrkadiel"])
        context = build_context(taxonomy, ai=ai)

        await handle_product_webhook(PAYLOAD, context)

        assert context.products.call_names == ["update_product_fields", "set_processed_flag"]


class TestCollectionStageIsBestEffort:
    @pytest.mark.asyncio
    async def test_collection_failure_does_not_fail_the_run(self, taxonomy) -> None:
        collections = FakeCollectionStore()
        collections.fail_ensure = True
        context = build_context(taxonomy, collections=collections)

        result = await handle_product_webhook(PAYLOAD, context)

        assert result.status == PipelineStatus.PROCESSED
        assert [d["operation"] for d in result.diagnostics] == ["collections"]
        assert context.products.call_names[-1] == "set_processed_flag"

    @pytest.mark.asyncio
    async def test_kill_switch_skips_ensure_and_attach(self, taxonomy) -> None:
        context = build_context(taxonomy, attach_enabled=False)

        result = await handle_product_webhook(PAYLOAD, context)

        assert result.status == PipelineStatus.PROCESSED
        assert context.collections.created == []
        assert context.collections.collects == set()

    @pytest.mark.asyncio
    async def test_dry_run_ensures_but_does_not_attach(self, taxonomy) -> None:
        context = build_context(taxonomy, dry_run=True)

        result = await handle_product_webhook(PAYLOAD, context)

        assert len(context.collections.created) == 3
        assert context.collections.collects == set()
        assert [a.status for a in result.attached] == ["dry_run"] * 3

    @pytest.mark.asyncio
    async def test_unbranded_product_skips_collections(self, taxonomy) -> None:
        ai = FakeAI(rewrite=make_rewrite(base_tags=["Univerzálny", "Doplnky"], subtags=[], collections=[]))
        product = make_product(title="Univerzálny držiak", tags=[])
        context = build_context(taxonomy, product=product, ai=ai)

        result = await handle_product_webhook(PAYLOAD, context)

        assert result.status == PipelineStatus.PROCESSED
        assert result.classification.is_empty
        assert context.collections.created == []


class TestCriticalFailures:
    @pytest.mark.asyncio
    async def test_rewrite_failure_propagates_before_any_write(self, taxonomy) -> None:
        context = build_context(taxonomy, ai=FakeAI(error=AIResponseError("OpenAI: response is not valid JSON")))

        with pytest.raises(AIResponseError):
            await handle_product_webhook(PAYLOAD, context)
        assert context.products.calls == []

    @pytest.mark.asyncio
    async def test_variant_failure_leaves_product_unflagged(self, taxonomy) -> None:
        context = build_context(taxonomy)
        context.products.fail_on = "update_variant_options"

        with pytest.raises(RuntimeError):
            await handle_product_webhook(PAYLOAD, context)
        assert "set_processed_flag" not in context.products.call_names
