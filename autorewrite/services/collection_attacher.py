import logging
from typing import Literal

from pydantic import BaseModel

from autorewrite.services.diagnostics import Diagnostics
from autorewrite.shopify.collections import CollectionStore
from autorewrite.taxonomy.models import EnsuredBranchNode

logger = logging.getLogger(__name__)


class AttachOutcome(BaseModel):
    collection_id: int
    title: str
    status: Literal["attached", "already_member", "dry_run", "failed"]


class CollectionAttacher:
    def __init__(self, collections: CollectionStore, enabled: bool = True, dry_run: bool = False):
        self.collections = collections
        self.enabled = enabled
        self.dry_run = dry_run

    async def attach(
        self,
        product_id,
        ensured_branch: list[EnsuredBranchNode],
        diagnostics: Diagnostics | None = None,
    ) -> list[AttachOutcome]:
        """
        Make the product a member of every collection in the branch.
        Membership is checked before creating it, and a conflicting create
        ("already exists") is treated as success, so attaching twice is safe.
        """
        if not self.enabled:
            logger.warning("Collections attach disabled by flag")
            return []

        outcomes: list[AttachOutcome] = []
        for node in ensured_branch:
            if self.dry_run:
                logger.info(f"[DRY_RUN] Would attach product {product_id} -> {node.title} (#{node.collection_id})")
                outcomes.append(AttachOutcome(collection_id=node.collection_id, title=node.title, status="dry_run"))
                continue
            try:
                if await self.collections.collect_exists(product_id, node.collection_id):
                    status = "already_member"
                else:
                    await self.collections.create_collect(product_id, node.collection_id)
                    status = "attached"
            except Exception as e:
                logger.warning("Attach failed for product %s -> %s: %s", product_id, node.title, e)
                if diagnostics is not None:
                    diagnostics.record(f"attach:{node.collection_id}", e)
                status = "failed"
            outcomes.append(AttachOutcome(collection_id=node.collection_id, title=node.title, status=status))
        return outcomes
