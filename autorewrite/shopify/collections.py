import logging
from pathlib import PurePosixPath
from urllib.parse import urlparse

from autorewrite.shopify.client import ShopifyClient, next_page_info
from autorewrite.shopify.errors import ShopifyAPIError
from autorewrite.shopify.models import RemoteCollection
from autorewrite.taxonomy.normalize import normalize_for_match

logger = logging.getLogger(__name__)

FILES_QUERY = """
query($q: String!) {
  files(first: 5, query: $q) {
    nodes {
      ... on MediaImage { id image { url } }
      ... on GenericFile { id url }
    }
  }
}
"""


def match_collection_by_title(
    collections: list[RemoteCollection], title: str, exclude_ids: set[int] | None = None, prefix: bool = True,
) -> RemoteCollection | None:
    """Exact normalized title first, then (unless `prefix` is off) a normalized prefix match. Ids in `exclude_ids` never match."""
    want = normalize_for_match(title)
    if not want:
        return None
    candidates = [c for c in collections if c.id not in (exclude_ids or set())]
    for c in candidates:
        if normalize_for_match(c.title) == want:
            return c
    if not prefix:
        return None
    for c in candidates:
        if normalize_for_match(c.title).startswith(want):
            return c
    return None


def _file_url(node: dict) -> str | None:
    return (node.get("image") or {}).get("url") or node.get("url")


def _url_filename(url: str) -> str:
    return PurePosixPath(urlparse(url).path).name


class CollectionStore:
    """Custom collections, collects (membership), collection metafields and Files."""

    def __init__(self, client: ShopifyClient):
        self.client = client

    async def list_custom_collections(self) -> list[RemoteCollection]:
        collections: list[RemoteCollection] = []
        params = {"limit": 250}
        page = 0
        while True:
            page += 1
            res = await self.client.get("custom_collections.json", params=params)
            batch = res.get("custom_collections") or []
            collections.extend(RemoteCollection.from_rest(c) for c in batch)
            logger.debug(f"Retrieved {len(batch)} custom collections from page {page}")

            headers = self.client.last_response.headers if self.client.last_response else {}
            cursor = next_page_info(headers.get("Link") or headers.get("link"))
            if not cursor:
                break
            params = {"limit": 250, "page_info": cursor}
        return collections

    async def find_collection_by_title(self, title: str, exclude_ids: set[int] | None = None) -> RemoteCollection | None:
        return match_collection_by_title(await self.list_custom_collections(), title, exclude_ids)

    async def create_collection(self, title: str) -> RemoteCollection:
        res = await self.client.post("custom_collections.json", {"custom_collection": {"title": title}})
        logger.info("Created custom collection %r", title)
        return RemoteCollection.from_rest(res["custom_collection"])

    async def ensure_collection(self, title: str, exclude_ids: set[int] | None = None) -> RemoteCollection:
        found = await self.find_collection_by_title(title, exclude_ids)
        if found:
            return found
        return await self.create_collection(title)

    async def get_collection(self, collection_id: int) -> RemoteCollection | None:
        try:
            res = await self.client.get(f"custom_collections/{collection_id}.json", params={"fields": "id,image,title"})
        except ShopifyAPIError as e:
            if e.is_not_found:
                return None
            raise
        data = res.get("custom_collection")
        return RemoteCollection.from_rest(data) if data else None

    async def set_collection_image(self, collection_id: int, src: str) -> dict:
        return await self.client.put(f"custom_collections/{collection_id}.json", {
            "custom_collection": {"id": collection_id, "image": {"src": src}}
        })

    async def upsert_collection_metafield(self, collection_id: int, namespace: str, key: str, mf_type: str, value: str) -> dict:
        return await self.client.post(f"collections/{collection_id}/metafields.json", {
            "metafield": {"namespace": namespace, "key": key, "type": mf_type, "value": value}
        })

    async def collect_exists(self, product_id, collection_id) -> bool:
        res = await self.client.get("collects.json", params={
            "product_id": product_id,
            "collection_id": collection_id,
            "limit": 1,
        })
        return bool(res.get("collects"))

    async def create_collect(self, product_id, collection_id) -> dict | None:
        """Create a product/collection membership. An "already exists" conflict counts as success."""
        try:
            res = await self.client.post("collects.json", {
                "collect": {"product_id": int(product_id), "collection_id": int(collection_id)}
            })
        except ShopifyAPIError as e:
            if e.is_already_exists:
                logger.warning(f"Collect already exists (skipping): product {product_id} -> collection {collection_id}")
                return None
            raise
        return res.get("collect")

    async def search_files(self, filename: str) -> list[str]:
        """CDN URLs of Shopify Files whose file name equals `filename` (case-insensitive)."""
        data = await self.client.graphql(FILES_QUERY, {"q": f"filename:{filename}"})
        urls = []
        for node in (data.get("files") or {}).get("nodes") or []:
            url = _file_url(node or {})
            if url and _url_filename(url).lower() == filename.lower():
                urls.append(url)
        return urls
