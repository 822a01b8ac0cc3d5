import logging

from autorewrite.config import Settings
from autorewrite.services.ai_service import OpenAIService
from autorewrite.services.branch_ensurer import BranchEnsurer
from autorewrite.services.classifier import BrandLeafClassifier
from autorewrite.services.collection_attacher import CollectionAttacher
from autorewrite.services.collection_images import CollectionImageResolver
from autorewrite.services.collection_index import CollectionIndex
from autorewrite.shopify.client import ShopifyClient
from autorewrite.shopify.collections import CollectionStore
from autorewrite.shopify.products import ProductStore
from autorewrite.shopify.rate_limit import RateLimiter
from autorewrite.taxonomy.store import TaxonomyStore

logger = logging.getLogger(__name__)


class EnrichmentContext:
    """
    Everything one enrichment run needs, built once at process start and
    passed explicitly: the Shopify stores behind one shared rate limiter, the
    OpenAI wrapper, and the process-lifetime taxonomy and collection caches.
    """

    def __init__(
        self,
        products: ProductStore,
        collections: CollectionStore,
        ai: OpenAIService,
        taxonomy: TaxonomyStore,
        collection_index: CollectionIndex | None = None,
        image_resolver: CollectionImageResolver | None = None,
        attach_enabled: bool = True,
        dry_run: bool = False,
    ):
        self.products = products
        self.collections = collections
        self.ai = ai
        self.taxonomy = taxonomy
        self.collection_index = collection_index or CollectionIndex()
        self.classifier = BrandLeafClassifier(taxonomy, ai)
        self.branch_ensurer = BranchEnsurer(collections, image_resolver, self.collection_index)
        self.attacher = CollectionAttacher(collections, enabled=attach_enabled, dry_run=dry_run)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EnrichmentContext":
        limiter = RateLimiter(settings.SHOPIFY_MIN_INTERVAL_MS / 1000)
        client = ShopifyClient(
            shop=settings.SHOPIFY_SHOP,
            token=settings.SHOPIFY_TOKEN,
            api_version=settings.SHOPIFY_API_VERSION,
            rate_limiter=limiter,
            max_retries=settings.SHOPIFY_MAX_RETRIES,
            retry_backoff=settings.SHOPIFY_RETRY_BACKOFF_MS / 1000,
        )
        products = ProductStore(
            client,
            ready_attempts=settings.PRODUCT_READY_ATTEMPTS,
            ready_delay=settings.PRODUCT_READY_DELAY_MS / 1000,
            variant_attempts=settings.VARIANT_UPDATE_ATTEMPTS,
            variant_retry_delay=settings.VARIANT_RETRY_DELAY_MS / 1000,
        )
        collections = CollectionStore(client)
        taxonomy = TaxonomyStore(settings.TAXONOMY_PATH)
        taxonomy.load()

        context = cls(
            products=products,
            collections=collections,
            ai=OpenAIService(settings.OPENAI_API_KEY, model=settings.OPENAI_MODEL, language=settings.STORE_LANGUAGE),
            taxonomy=taxonomy,
            collection_index=CollectionIndex.from_file(settings.COLLECTIONS_MAP_PATH),
            image_resolver=CollectionImageResolver(
                collections,
                base=settings.COLLECTION_IMAGE_BASE,
                exts=settings.collection_image_exts,
                default_name=settings.COLLECTION_IMAGE_DEFAULT,
                rate_limiter=limiter,
            ),
            attach_enabled=settings.ENABLE_COLLECTIONS_ATTACH,
            dry_run=settings.COLLECTIONS_DRY_RUN,
        )
        logger.info(
            "Enrichment context ready (attach=%s, dry_run=%s, shop=%s)",
            settings.ENABLE_COLLECTIONS_ATTACH, settings.COLLECTIONS_DRY_RUN, settings.SHOPIFY_SHOP,
        )
        return context
