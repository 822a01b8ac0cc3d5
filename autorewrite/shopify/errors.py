import re

_ALREADY_EXISTS_RE = re.compile(r"already|exists|has already been taken", re.IGNORECASE)


class ShopifyError(RuntimeError):
    pass


class ShopifyAPIError(ShopifyError):
    def __init__(self, method: str, url: str, status: int, body: str = ""):
        self.method = method
        self.url = url
        self.status = status
        self.body = body or ""
        super().__init__(f"Shopify {method} {url} failed: {status} {self.body[:500]}")

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429

    @property
    def is_already_exists(self) -> bool:
        return self.status == 422 and bool(_ALREADY_EXISTS_RE.search(self.body))


class ShopifyGraphQLError(ShopifyError):
    def __init__(self, errors):
        self.errors = errors
        super().__init__(f"Shopify GraphQL errors: {errors}")
