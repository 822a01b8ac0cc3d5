import asyncio
import logging
import time

import aiohttp

from autorewrite.shopify.collections import CollectionStore
from autorewrite.shopify.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

RAW_HOST = "raw.githubusercontent.com/"
JSDELIVR_HOST = "cdn.jsdelivr.net/gh/"


def mirror_base(base: str) -> str | None:
    """
    raw.githubusercontent.com and jsDelivr serve the same GitHub files;
    return the other host's equivalent of `base` when it is one of them.
      raw:      https://raw.githubusercontent.com/<owner>/<repo>/<branch>/<path>
      jsDelivr: https://cdn.jsdelivr.net/gh/<owner>/<repo>@<branch>/<path>
    """
    if RAW_HOST in base:
        seg = base.split(RAW_HOST, 1)[1].split("/")
        if len(seg) < 3:
            return None
        owner, repo, branch = seg[0], seg[1], seg[2]
        rest = "/".join(seg[3:])
        return f"https://{JSDELIVR_HOST}{owner}/{repo}@{branch}/{rest}"
    if JSDELIVR_HOST in base:
        after = base.split(JSDELIVR_HOST, 1)[1]
        owner, _, rest = after.partition("/")
        repo, _, after_repo = rest.partition("@")
        if not owner or not repo or not after_repo:
            return None
        branch, _, path_rest = after_repo.partition("/")
        return f"https://{RAW_HOST}{owner}/{repo}/{branch}/{path_rest}"
    return None


def with_cache_buster(url: str) -> str:
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}cb={int(time.time() * 1000)}"


class CollectionImageResolver:
    """
    Find an image for a taxonomy node by naming convention:
    `<node_slug>.<ext>` for each configured extension, then the default file
    names. An external static base (GitHub/CDN) is tried first when
    configured; otherwise Shopify Files are searched by file name.
    """

    def __init__(
        self,
        collections: CollectionStore,
        base: str = "",
        exts: list[str] | None = None,
        default_name: str = "default.png",
        rate_limiter: RateLimiter | None = None,
        url_ok=None,
    ):
        self.collections = collections
        self.base = (base or "").strip()
        self.exts = exts or ["png", "jpg", "jpeg", "webp"]
        self.default_name = default_name or "default.png"
        self.rate_limiter = rate_limiter
        self._url_ok = url_ok or self._http_ok

    def slug_candidates(self, node_slug: str) -> list[str]:
        return [f"{node_slug}.{ext}" for ext in self.exts] if node_slug else []

    def default_candidates(self) -> list[str]:
        names = [self.default_name] + [f"default.{ext}" for ext in self.exts]
        return list(dict.fromkeys(names))

    async def _http_ok(self, url: str) -> bool:
        if self.rate_limiter:
            await self.rate_limiter.wait()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.head(url, allow_redirects=True) as resp:
                    if resp.status < 400:
                        return True
                # some CDNs are picky about HEAD
                async with session.get(url, allow_redirects=True) as resp:
                    return resp.status < 400
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("Image check failed for %s: %s", url, e)
            return False

    async def _ok_with_bust(self, url: str) -> bool:
        # CDNs can 404 until purged; retry once with a cache-buster
        if await self._url_ok(url):
            return True
        return await self._url_ok(with_cache_buster(url))

    async def find_image_url(self, node_slug: str) -> str | None:
        if self.base:
            bases = list(dict.fromkeys(b for b in (self.base, mirror_base(self.base)) if b))
            for b in bases:
                for name in self.slug_candidates(node_slug) + self.default_candidates():
                    url = f"{b}{name}"
                    logger.debug("IMG try: %s", url)
                    if await self._ok_with_bust(url):
                        return url
            logger.warning("IMG: no match under external base(s) for slug=%s", node_slug)
            return None

        for name in self.slug_candidates(node_slug) + self.default_candidates():
            urls = await self.collections.search_files(name)
            if urls:
                return urls[0]
        return None
