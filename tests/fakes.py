"""In-memory stand-ins for the Shopify stores and the OpenAI wrapper."""

from __future__ import annotations

from pathlib import Path

from autorewrite.services.ai_service import AIOption, RewriteOutput
from autorewrite.shopify.collections import match_collection_by_title
from autorewrite.shopify.models import Product, ProductOption, RemoteCollection, SelectedOption, Variant

TAXONOMY_FILE = Path(__file__).resolve().parents[1] / "autorewrite" / "resources" / "taxonomy.json"


class FakeCollectionStore:
    def __init__(self, collections: list[RemoteCollection] | None = None, files: dict[str, list[str]] | None = None):
        self.collections: dict[int, RemoteCollection] = {c.id: c for c in collections or []}
        self.files = files or {}
        self.next_id = 1000
        self.created: list[str] = []
        self.images: dict[int, str] = {}
        self.metafields: dict[tuple[int, str, str], tuple[str, str]] = {}
        self.collects: set[tuple[str, int]] = set()
        self.fail_metafield_keys: set[str] = set()
        self.fail_ensure = False
        self.fail_collect_exists = False
        self.file_searches: list[str] = []

    async def list_custom_collections(self):
        return list(self.collections.values())

    async def find_collection_by_title(self, title, exclude_ids=None):
        return match_collection_by_title(list(self.collections.values()), title, exclude_ids)

    async def create_collection(self, title):
        self.next_id += 1
        collection = RemoteCollection(id=self.next_id, title=title)
        self.collections[collection.id] = collection
        self.created.append(title)
        return collection

    async def ensure_collection(self, title, exclude_ids=None):
        if self.fail_ensure:
            raise RuntimeError("collection lookup failed")
        return await self.find_collection_by_title(title, exclude_ids) or await self.create_collection(title)

    async def get_collection(self, collection_id):
        return self.collections.get(collection_id)

    async def set_collection_image(self, collection_id, src):
        self.images[collection_id] = src
        current = self.collections[collection_id]
        self.collections[collection_id] = current.model_copy(update={"image_src": src})
        return {}

    async def upsert_collection_metafield(self, collection_id, namespace, key, mf_type, value):
        if key in self.fail_metafield_keys:
            raise RuntimeError(f"metafield {key} rejected")
        self.metafields[(collection_id, namespace, key)] = (mf_type, value)
        return {}

    async def collect_exists(self, product_id, collection_id):
        if self.fail_collect_exists:
            raise RuntimeError("collects lookup failed")
        return (str(product_id), int(collection_id)) in self.collects

    async def create_collect(self, product_id, collection_id):
        self.collects.add((str(product_id), int(collection_id)))
        return {"product_id": product_id, "collection_id": collection_id}

    async def search_files(self, filename):
        self.file_searches.append(filename)
        return list(self.files.get(filename, []))

    def metafield(self, collection_id, key, namespace="taxonomy"):
        entry = self.metafields.get((collection_id, namespace, key))
        return entry[1] if entry else None

    def id_of(self, title) -> int:
        found = match_collection_by_title(list(self.collections.values()), title)
        assert found is not None, f"no collection titled {title!r}"
        return found.id


class FakeProductStore:
    """Records every write in call order so tests can assert on sequencing."""

    def __init__(self, product: Product | None = None):
        self.product = product
        self.calls: list[tuple] = []
        self.fail_on: str | None = None

    def _record(self, name, *args):
        if self.fail_on == name:
            raise RuntimeError(f"{name} failed")
        self.calls.append((name, *args))

    @property
    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def wait_for_product(self, product_gid):
        return self.product

    async def update_product_fields(self, product_gid, title, description_html, tags):
        self._record("update_product_fields", product_gid, title, description_html, tags)
        return {}

    async def update_option_names(self, legacy_id, option_names, existing_options):
        self._record("update_option_names", legacy_id, option_names)
        return {}

    async def update_variant_options(self, variant_gid, option_values):
        self._record("update_variant_options", variant_gid, option_values)
        return {}

    async def set_processed_flag(self, product_gid):
        self._record("set_processed_flag", product_gid)
        return {}


class FakeAI:
    def __init__(self, rewrite: RewriteOutput | None = None, picks: list[str] | None = None, error: Exception | None = None):
        self.rewrite = rewrite or make_rewrite()
        self.picks = picks or []
        self.error = error
        self.rewrite_prompts: list[str] = []
        self.pick_payloads: list[dict] = []

    async def rewrite_product(self, prompt):
        self.rewrite_prompts.append(prompt)
        if self.error:
            raise self.error
        return self.rewrite

    async def pick_collection_slugs(self, payload):
        self.pick_payloads.append(payload)
        return list(self.picks)


def make_rewrite(**overrides) -> RewriteOutput:
    data = {
        "title": "Kryty zrkadiel Audi – čierne",
        "description": "Úvod.\n🚗 Výhody:\n✅ A",
        "base_tags": ["Audi"],
        "subtags": ["Audi Exteriér"],
        "extra_tags": ["A4"],
        "collections": ["AUDI Exteriér"],
        "options": [],
    }
    data.update(overrides)
    return RewriteOutput.model_validate(data)


def make_product(
    title: str = "Mirror covers for Audi A4",
    tags: list[str] | None = None,
    vendor: str = "",
    processed: bool = False,
    colors: list[str] | None = None,
) -> Product:
    colors = colors if colors is not None else ["Black", "White"]
    options = [ProductOption(id="gid://shopify/ProductOption/11", name="Color", position=1, values=colors)] if colors else []
    variants = [
        Variant(
            id=f"gid://shopify/ProductVariant/{100 + i}",
            title=color,
            selected_options=[SelectedOption(name="Color", value=color)],
        )
        for i, color in enumerate(colors)
    ]
    return Product(
        id="gid://shopify/Product/1",
        title=title,
        vendor=vendor,
        description_html="<p>Carbon look mirror covers</p>",
        tags=tags if tags is not None else ["Audi"],
        options=options,
        variants=variants,
        processed=processed,
    )


def ai_option(name=None, position=None, values=None) -> AIOption:
    return AIOption(name=name, position=position, values=values)
