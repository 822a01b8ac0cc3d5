import json
import logging

from autorewrite.services.collection_images import CollectionImageResolver
from autorewrite.services.collection_index import CollectionIndex
from autorewrite.services.diagnostics import Diagnostics
from autorewrite.shopify.client import collection_gid
from autorewrite.shopify.collections import CollectionStore, match_collection_by_title
from autorewrite.shopify.models import RemoteCollection
from autorewrite.taxonomy.models import EnsuredBranchNode, TaxonomyNode

logger = logging.getLogger(__name__)

TAXONOMY_NAMESPACE = "taxonomy"


class BranchResult:
    def __init__(self, nodes: list[EnsuredBranchNode], diagnostics: Diagnostics):
        self.nodes = nodes
        self.diagnostics = diagnostics

    @property
    def collection_ids(self) -> list[int]:
        return [n.collection_id for n in self.nodes]


def link_chain(nodes: list[EnsuredBranchNode]) -> list[EnsuredBranchNode]:
    """Point every node at its neighbours within this branch only (a linear chain)."""
    for i, node in enumerate(nodes):
        node.parent_id = nodes[i - 1].collection_id if i > 0 else None
        node.child_id = nodes[i + 1].collection_id if i < len(nodes) - 1 else None
    return nodes


class BranchEnsurer:
    def __init__(
        self,
        collections: CollectionStore,
        image_resolver: CollectionImageResolver | None = None,
        index: CollectionIndex | None = None,
    ):
        self.collections = collections
        self.image_resolver = image_resolver
        self.index = index or CollectionIndex()

    async def claim_exact_matches(self, branch_nodes: list[TaxonomyNode]) -> dict[int, RemoteCollection]:
        """
        Existing collections whose title equals a node name, keyed by level.
        These are claimed before any prefix matching so a shorter name (the
        brand root) cannot take the collection of a deeper node.
        """
        claimed: dict[int, RemoteCollection] = {}
        existing: list[RemoteCollection] | None = None
        for level, node in enumerate(branch_nodes):
            used = {c.id for c in claimed.values()}
            cid = self.index.lookup(node.name)
            if cid and cid not in used:
                claimed[level] = RemoteCollection(id=cid, title=node.name)
                continue
            if existing is None:
                existing = await self.collections.list_custom_collections()
            found = match_collection_by_title(existing, node.name, exclude_ids=used, prefix=False)
            if found:
                claimed[level] = found
        return claimed

    async def assign_image(self, node: TaxonomyNode, collection: RemoteCollection) -> str | None:
        """Set a conventional image on a collection that has none. Never overwrites."""
        if self.image_resolver is None:
            return None
        full = await self.collections.get_collection(collection.id)
        if full is not None and full.image_src:
            return None
        url = await self.image_resolver.find_image_url(node.node_slug)
        if not url:
            logger.info("Collection image missing (no matching file): %s node_slug=%s", node.name, node.node_slug)
            return None
        await self.collections.set_collection_image(collection.id, url)
        logger.info("Collection image set: %s <= %s", node.name, url)
        return url

    async def ensure_branch(self, branch_nodes: list[TaxonomyNode]) -> BranchResult:
        """
        Make sure every node of a root-to-leaf branch has a collection, give
        image-less collections an image, link the chain and persist the
        taxonomy metafields. Collection lookup/creation failures propagate;
        image and metafield failures are recorded in the result's diagnostics.
        """
        diagnostics = Diagnostics()
        ensured: list[EnsuredBranchNode] = []
        claimed = await self.claim_exact_matches(branch_nodes)
        for level, node in enumerate(branch_nodes):
            collection = claimed.get(level)
            if collection is None:
                used = {c.id for c in claimed.values()} | {n.collection_id for n in ensured}
                collection = await self.collections.ensure_collection(node.name, exclude_ids=used)
            await diagnostics.best_effort(f"image:{node.name}", self.assign_image(node, collection))
            ensured.append(EnsuredBranchNode(
                collection_id=collection.id,
                title=node.name,
                node_slug=node.node_slug,
                facets=list(node.facets),
                level=level,
            ))

        link_chain(ensured)
        await self.write_taxonomy_metafields(ensured, diagnostics)
        await self.link_sub_collections(ensured, diagnostics)
        return BranchResult(ensured, diagnostics)

    async def _upsert(self, diagnostics: Diagnostics, collection_id: int, namespace: str, key: str, mf_type: str, value: str):
        await diagnostics.best_effort(
            f"metafield:{collection_id}:{namespace}.{key}",
            self.collections.upsert_collection_metafield(collection_id, namespace, key, mf_type, value),
        )

    async def write_taxonomy_metafields(self, nodes: list[EnsuredBranchNode], diagnostics: Diagnostics) -> None:
        for n in nodes:
            await self._upsert(diagnostics, n.collection_id, TAXONOMY_NAMESPACE, "level", "number_integer", str(n.level))
            if n.parent_id:
                await self._upsert(diagnostics, n.collection_id, TAXONOMY_NAMESPACE, "parent", "number_integer", str(n.parent_id))
            children = [n.child_id] if n.child_id else []
            await self._upsert(diagnostics, n.collection_id, TAXONOMY_NAMESPACE, "children", "json", json.dumps(children))
            if n.node_slug:
                await self._upsert(diagnostics, n.collection_id, TAXONOMY_NAMESPACE, "node_slug", "single_line_text_field", n.node_slug)
            if n.facets:
                await self._upsert(
                    diagnostics, n.collection_id, TAXONOMY_NAMESPACE, "facets",
                    "list.single_line_text_field", json.dumps(n.facets, ensure_ascii=False),
                )

    async def set_sub_collections(self, diagnostics: Diagnostics, parent_id: int, child_ids: list[int]) -> None:
        await self._upsert(
            diagnostics, parent_id, "custom", "sub_collections", "list.collection_reference",
            json.dumps([collection_gid(cid) for cid in child_ids]),
        )

    async def link_sub_collections(self, nodes: list[EnsuredBranchNode], diagnostics: Diagnostics) -> None:
        for n in nodes:
            await self.set_sub_collections(diagnostics, n.collection_id, [n.child_id] if n.child_id else [])
