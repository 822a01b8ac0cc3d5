import json
import logging

from pydantic import BaseModel

from autorewrite.services.context import EnrichmentContext
from autorewrite.services.diagnostics import Diagnostics
from autorewrite.shopify.models import RemoteCollection
from autorewrite.taxonomy.models import TaxonomyNode

logger = logging.getLogger(__name__)


class SeedSummary(BaseModel):
    roots: int = 0
    nodes: int = 0
    diagnostics: list[dict] = []


def walk(nodes: list[TaxonomyNode]):
    for node in nodes:
        yield node
        yield from walk(node.children)


async def seed_taxonomy(context: EnrichmentContext, dry_run: bool = False) -> SeedSummary:
    """
    Create a collection for every taxonomy node and link the whole tree:
    taxonomy.level / node_slug / parent / children on each collection and
    custom.sub_collections listing every direct child. Images are left alone.
    """
    ensurer = context.branch_ensurer
    diagnostics = Diagnostics()
    roots = context.taxonomy.load()
    summary = SeedSummary(roots=len(roots))
    logger.info(f"Seeding {len(roots)} brand root(s)...")

    # exact title matches are claimed up front so a prefix match never takes another node's collection
    claimed: dict[int, RemoteCollection] = {}
    if not dry_run:
        flat = list(walk(roots))
        claimed = {id(flat[i]): c for i, c in (await ensurer.claim_exact_matches(flat)).items()}
    assigned = {c.id for c in claimed.values()}

    async def visit(node: TaxonomyNode, level: int, parent_id: int | None) -> int | None:
        summary.nodes += 1
        if dry_run:
            logger.info("[DRY_RUN] Would ensure collection %r (level %s)", node.name, level)
            for child in node.children:
                await visit(child, level + 1, None)
            return None

        collection = claimed.get(id(node))
        if collection is None:
            collection = await context.collections.ensure_collection(node.name, exclude_ids=set(assigned))
            assigned.add(collection.id)
        child_ids = []
        for child in node.children:
            child_id = await visit(child, level + 1, collection.id)
            if child_id:
                child_ids.append(child_id)

        async def upsert(key, mf_type, value, namespace="taxonomy"):
            await diagnostics.best_effort(
                f"metafield:{collection.id}:{namespace}.{key}",
                context.collections.upsert_collection_metafield(collection.id, namespace, key, mf_type, value),
            )

        await upsert("level", "number_integer", str(level))
        if node.node_slug:
            await upsert("node_slug", "single_line_text_field", node.node_slug)
        if parent_id:
            await upsert("parent", "number_integer", str(parent_id))
        await upsert("children", "json", json.dumps(child_ids))
        await ensurer.set_sub_collections(diagnostics, collection.id, child_ids)
        return collection.id

    for root in roots:
        await visit(root, 0, None)

    summary.diagnostics = diagnostics.as_list()
    logger.info(f"DONE: {summary.nodes} taxonomy nodes seeded, {len(diagnostics)} diagnostics")
    return summary
