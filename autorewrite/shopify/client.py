import asyncio
import json
import logging
from dataclasses import dataclass, field

import aiohttp

from autorewrite.shopify.errors import ShopifyAPIError, ShopifyGraphQLError
from autorewrite.shopify.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

API_VERSION = "2024-04"


@dataclass
class ShopifyResponse:
    status: int
    text: str
    headers: dict = field(default_factory=dict)

    def json(self) -> dict:
        if not self.text:
            return {}
        return json.loads(self.text)


class ShopifyClient:
    def __init__(
        self,
        shop: str,
        token: str,
        api_version: str = API_VERSION,
        rate_limiter: RateLimiter | None = None,
        max_retries: int = 3,
        retry_backoff: float = 0.5,
    ):
        self.shop = shop
        self.token = token
        self.api_version = api_version or API_VERSION
        self.rate_limiter = rate_limiter or RateLimiter()
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.last_response: ShopifyResponse | None = None

        store = shop if "." in shop else f"{shop}.myshopify.com"
        self.base_url = f"https://{store}/admin/api/{self.api_version}"

    def _url(self, endpoint: str) -> str:
        # endpoint examples: "custom_collections.json", "variants/123456789.json"
        if endpoint.startswith("http"):
            return endpoint
        if endpoint.startswith("/"):
            endpoint = endpoint[1:]
        return f"{self.base_url}/{endpoint}"

    def _headers(self) -> dict:
        return {
            "X-Shopify-Access-Token": self.token,
            "Content-Type": "application/json",
        }

    async def _send(self, method: str, url: str, payload: dict | None = None, params: dict | None = None) -> ShopifyResponse:
        async with aiohttp.ClientSession() as session:
            async with session.request(method, url, json=payload, params=params, headers=self._headers()) as resp:
                text = await resp.text()
                return ShopifyResponse(status=resp.status, text=text, headers=dict(resp.headers))

    async def request(self, method: str, endpoint: str, payload: dict | None = None, params: dict | None = None) -> ShopifyResponse:
        """
        Send one Admin API request through the shared rate limiter.
        429 responses are retried with linearly increasing backoff; any other
        status >= 400 (or a 429 after the last retry) raises ShopifyAPIError.
        """
        url = self._url(endpoint)
        attempt = 0
        while True:
            await self.rate_limiter.wait()
            resp = await self._send(method, url, payload=payload, params=params)
            self.last_response = resp
            if resp.status == 429 and attempt < self.max_retries:
                backoff = self.retry_backoff * (attempt + 1)
                logger.warning(
                    "429 rate limit on %s %s -> retrying in %.2fs (attempt %s/%s)",
                    method, url, backoff, attempt + 1, self.max_retries,
                )
                await asyncio.sleep(backoff)
                attempt += 1
                continue
            if resp.status >= 400:
                logger.error(f"Shopify {method} Error {resp.status}: {resp.text[:500]}")
                raise ShopifyAPIError(method, url, resp.status, resp.text)
            return resp

    async def get(self, endpoint: str, params: dict | None = None) -> dict:
        resp = await self.request("GET", endpoint, params=params)
        return resp.json()

    async def post(self, endpoint: str, payload: dict) -> dict:
        resp = await self.request("POST", endpoint, payload=payload)
        return resp.json()

    async def put(self, endpoint: str, payload: dict) -> dict:
        resp = await self.request("PUT", endpoint, payload=payload)
        return resp.json()

    async def delete(self, endpoint: str) -> dict:
        resp = await self.request("DELETE", endpoint)
        return resp.json()

    async def graphql(self, query: str, variables: dict | None = None) -> dict:
        data = await self.post("graphql.json", {"query": query, "variables": variables or {}})
        if data.get("errors"):
            raise ShopifyGraphQLError(data["errors"])
        return data.get("data") or {}


def next_page_info(link_header: str | None) -> str | None:
    """Extract the `page_info` cursor of the rel="next" entry of a Link header."""
    if not link_header:
        return None
    for link in link_header.split(","):
        if 'rel="next"' not in link:
            continue
        url = link.split(";")[0].strip().strip("<>")
        for part in url.split("?", 1)[-1].split("&"):
            if part.startswith("page_info="):
                return part[len("page_info="):]
    return None


def gid_to_numeric(gid) -> str | None:
    # e.g. gid://shopify/ProductVariant/56073641656694 -> 56073641656694
    if gid is None or gid == "":
        return None
    return str(gid).rsplit("/", 1)[-1]


def collection_gid(collection_id) -> str:
    return f"gid://shopify/Collection/{collection_id}"


def product_gid(product_id) -> str:
    return f"gid://shopify/Product/{product_id}"
