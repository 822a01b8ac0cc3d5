from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    SHOPIFY_SHOP: str = ""
    SHOPIFY_TOKEN: str = ""
    SHOPIFY_API_VERSION: str = "2024-04"
    SHOPIFY_WEBHOOK_SECRET: str = ""

    # ~2 calls/sec hard limit on the Admin API
    SHOPIFY_MIN_INTERVAL_MS: int = 600
    SHOPIFY_MAX_RETRIES: int = 3
    SHOPIFY_RETRY_BACKOFF_MS: int = 500

    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    STORE_LANGUAGE: str = "Slovak"

    TAXONOMY_PATH: str = str(Path(__file__).parent / "resources" / "taxonomy.json")
    COLLECTIONS_MAP_PATH: str = "collections-map.json"

    ENABLE_COLLECTIONS_ATTACH: bool = True
    COLLECTIONS_DRY_RUN: bool = True  # keep on until the taxonomy is seeded

    COLLECTION_IMAGE_BASE: str = ""
    COLLECTION_IMAGE_EXTS: str = "png,jpg,jpeg,webp"
    COLLECTION_IMAGE_DEFAULT: str = "default.png"

    PRODUCT_READY_ATTEMPTS: int = 12
    PRODUCT_READY_DELAY_MS: int = 1500
    VARIANT_UPDATE_ATTEMPTS: int = 3
    VARIANT_RETRY_DELAY_MS: int = 700

    class Config:
        env_file = ".env"

    @property
    def collection_image_exts(self) -> list[str]:
        return [e.strip() for e in self.COLLECTION_IMAGE_EXTS.split(",") if e.strip()]


settings = Settings()
