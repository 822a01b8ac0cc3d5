import logging
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from autorewrite.services.ai_service import RewriteOutput
from autorewrite.services.collection_attacher import AttachOutcome
from autorewrite.services.context import EnrichmentContext
from autorewrite.services.description_formatter import format_description
from autorewrite.services.diagnostics import Diagnostics
from autorewrite.services.prompts import build_rewrite_prompt
from autorewrite.services.variant_remapper import new_values_by_position, remap
from autorewrite.shopify.client import product_gid
from autorewrite.shopify.models import Product, VariantUpdate
from autorewrite.taxonomy.models import ClassificationResult, EnsuredBranchNode

logger = logging.getLogger(__name__)


class PipelineStatus(str, Enum):
    PROCESSED = "processed"
    ALREADY_PROCESSED = "already_processed"
    NOT_READY = "not_ready"


class PipelineResult(BaseModel):
    status: PipelineStatus
    product_id: str
    classification: Optional[ClassificationResult] = None
    ensured_branches: List[List[EnsuredBranchNode]] = []
    attached: List[AttachOutcome] = []
    variant_updates: List[VariantUpdate] = []
    diagnostics: List[dict] = []


class CollectionStageResult(BaseModel):
    classification: ClassificationResult
    ensured_branches: List[List[EnsuredBranchNode]] = []
    attached: List[AttachOutcome] = []


class InvalidWebhookPayload(ValueError):
    pass


def _variant_changed(product: Product, update: VariantUpdate) -> bool:
    variant = next((v for v in product.variants if v.id == update.variant_id), None)
    if variant is None:
        return True
    position_by_name = {o.name: i + 1 for i, o in enumerate(product.options)}
    current = {position_by_name.get(so.name, 0): so.value for so in variant.selected_options}
    return any(current.get(pos) != value for pos, value in update.option_values.items())


async def run_collection_stage(
    context: EnrichmentContext,
    product: Product,
    rewrite: RewriteOutput,
    diagnostics: Diagnostics,
) -> CollectionStageResult:
    """Classify into taxonomy leaves, ensure each branch as collections and attach the product."""
    classification = await context.classifier.classify(product, rewrite)
    stage = CollectionStageResult(classification=classification)
    if classification.is_empty or not classification.detected_brand:
        logger.warning("Collections: no slug picks or no brand -> skipping")
        return stage
    logger.info("Classification => %s", classification.model_dump())

    if not context.attacher.enabled:
        logger.warning("Collections attach disabled by flag")
        return stage

    for branch in context.classifier.resolve_branches(classification):
        result = await context.branch_ensurer.ensure_branch(branch)
        diagnostics.extend(result.diagnostics)
        stage.ensured_branches.append(result.nodes)
        stage.attached.extend(await context.attacher.attach(product.legacy_id, result.nodes, diagnostics))
    return stage


async def handle_product_webhook(payload: dict, context: EnrichmentContext) -> PipelineResult:
    """
    One enrichment pass for a products/create or products/update webhook.

    Core writes (product fields, option names, variant values and the
    processed flag) propagate failures; the collection stage is best-effort
    and only adds diagnostics. The processed flag is written last so a failed
    run is retried from scratch on redelivery.
    """
    product_id = (payload or {}).get("id")
    if not product_id:
        raise InvalidWebhookPayload("webhook payload has no product id")
    gid = product_gid(product_id)

    product = await context.products.wait_for_product(gid)
    if product is None:
        logger.error("Product not ready after retries: %s", gid)
        return PipelineResult(status=PipelineStatus.NOT_READY, product_id=str(product_id))

    if product.processed:
        logger.info("Product %s already processed, skipping", gid)
        return PipelineResult(status=PipelineStatus.ALREADY_PROCESSED, product_id=str(product_id))

    rewrite = await context.ai.rewrite_product(build_rewrite_prompt(product))
    logger.info("AI collections => %s", rewrite.collections)

    await context.products.update_product_fields(
        gid, rewrite.title, format_description(rewrite.description), rewrite.tags,
    )
    if rewrite.option_names:
        await context.products.update_option_names(product.legacy_id, rewrite.option_names, product.options)

    diagnostics = Diagnostics()
    stage = await diagnostics.best_effort("collections", run_collection_stage(context, product, rewrite, diagnostics))

    updates = [u for u in remap(product, new_values_by_position(rewrite.options)) if _variant_changed(product, u)]
    for update in updates:
        await context.products.update_variant_options(update.variant_id, update.option_values)

    await context.products.set_processed_flag(gid)
    logger.info(f"✔ Enriched product {gid} ({len(updates)} variants updated, {len(diagnostics)} diagnostics)")

    return PipelineResult(
        status=PipelineStatus.PROCESSED,
        product_id=str(product_id),
        classification=stage.classification if stage else None,
        ensured_branches=stage.ensured_branches if stage else [],
        attached=stage.attached if stage else [],
        variant_updates=updates,
        diagnostics=diagnostics.as_list(),
    )
