import asyncio
import logging

from autorewrite.shopify.client import ShopifyClient, gid_to_numeric
from autorewrite.shopify.errors import ShopifyAPIError, ShopifyGraphQLError
from autorewrite.shopify.models import Product, ProductOption

logger = logging.getLogger(__name__)

PROCESSED_NAMESPACE = "automation"
PROCESSED_KEY = "processed"

PRODUCT_QUERY = """
query($id: ID!) {
  product(id: $id) {
    id
    title
    vendor
    descriptionHtml
    tags
    options { id name position values }
    variants(first: 250) {
      edges { node { id title selectedOptions { name value } } }
    }
    metafields(first: 10, namespace: "automation") {
      edges { node { key value } }
    }
  }
}
"""

PRODUCT_UPDATE_MUTATION = """
mutation($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id title tags }
    userErrors { field message }
  }
}
"""

METAFIELDS_SET_MUTATION = """
mutation($m: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $m) {
    metafields { id }
    userErrors { field message }
  }
}
"""


def _raise_user_errors(data: dict, key: str) -> dict:
    payload = (data or {}).get(key) or {}
    errors = payload.get("userErrors") or []
    if errors:
        raise ShopifyGraphQLError(errors)
    return payload


class ProductStore:
    """Product-side operations of the Admin API used by the enrichment pipeline."""

    def __init__(
        self,
        client: ShopifyClient,
        ready_attempts: int = 12,
        ready_delay: float = 1.5,
        variant_attempts: int = 3,
        variant_retry_delay: float = 0.7,
    ):
        self.client = client
        self.ready_attempts = ready_attempts
        self.ready_delay = ready_delay
        self.variant_attempts = variant_attempts
        self.variant_retry_delay = variant_retry_delay

    async def get_product(self, product_gid: str) -> Product | None:
        data = await self.client.graphql(PRODUCT_QUERY, {"id": product_gid})
        node = data.get("product")
        return Product.from_graphql(node) if node else None

    async def wait_for_product(self, product_gid: str) -> Product | None:
        """
        Poll until the product is readable. Shopify's read-after-write is not
        immediate after a create/update webhook, so a missing product or a
        failed read is retried a fixed number of times.
        """
        for attempt in range(self.ready_attempts):
            try:
                product = await self.get_product(product_gid)
                if product:
                    return product
            except Exception as e:
                logger.debug("Product %s not readable yet (attempt %s): %s", product_gid, attempt + 1, e)
            if attempt < self.ready_attempts - 1:
                await asyncio.sleep(self.ready_delay)
        return None

    async def update_product_fields(self, product_gid: str, title: str, description_html: str, tags: list[str]) -> dict:
        data = await self.client.graphql(PRODUCT_UPDATE_MUTATION, {
            "input": {
                "id": product_gid,
                "title": title,
                "descriptionHtml": description_html,
                "tags": tags,
            }
        })
        return _raise_user_errors(data, "productUpdate")

    async def update_option_names(self, legacy_id: str, option_names: list[dict], existing_options: list[ProductOption]) -> dict:
        """Rename options via REST, matching each new name to the existing option at the same position."""
        by_position = {o.position: o for o in existing_options}
        payload_options = []
        for o in option_names:
            matched = by_position.get(o.get("position"))
            entry = {"name": o["name"], "position": o.get("position")}
            if matched and matched.id:
                entry["id"] = int(gid_to_numeric(matched.id))
            payload_options.append(entry)

        return await self.client.put(f"products/{legacy_id}.json", {
            "product": {"id": int(legacy_id), "options": payload_options}
        })

    async def update_variant_options(self, variant_gid: str, option_values: dict[int, str]) -> dict:
        variant_id = gid_to_numeric(variant_gid)
        payload = {"variant": {"id": int(variant_id)}}
        for position in (1, 2, 3):
            if position in option_values:
                payload["variant"][f"option{position}"] = option_values[position]

        for attempt in range(self.variant_attempts):
            try:
                return await self.client.put(f"variants/{variant_id}.json", payload)
            except ShopifyAPIError as e:
                # the variant may not be visible yet right after the product write
                if e.is_not_found and attempt < self.variant_attempts - 1:
                    logger.warning("Variant %s not found yet, retrying (attempt %s)", variant_id, attempt + 1)
                    await asyncio.sleep(self.variant_retry_delay)
                    continue
                raise
        return {}

    async def set_processed_flag(self, product_gid: str) -> dict:
        data = await self.client.graphql(METAFIELDS_SET_MUTATION, {
            "m": [{
                "ownerId": product_gid,
                "type": "boolean",
                "namespace": PROCESSED_NAMESPACE,
                "key": PROCESSED_KEY,
                "value": "true",
            }]
        })
        return _raise_user_errors(data, "metafieldsSet")
