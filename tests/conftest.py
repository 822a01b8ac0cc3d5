import pytest

from autorewrite.taxonomy.store import TaxonomyStore
from tests.fakes import TAXONOMY_FILE, FakeCollectionStore


@pytest.fixture
def taxonomy() -> TaxonomyStore:
    store = TaxonomyStore(str(TAXONOMY_FILE))
    store.load()
    return store


@pytest.fixture
def template_taxonomy() -> TaxonomyStore:
    """Brand template whose areas carry no slugs, so no brand has leaves."""
    return TaxonomyStore(definition={
        "BRANDS": ["AUDI", "BMW"],
        "TEMPLATE": {
            "title": "{{BRAND}}",
            "children": [
                {"title": "{{BRAND}} Interiér"},
                {"title": "{{BRAND}} Exteriér"},
            ],
        },
    })


@pytest.fixture
def collections() -> FakeCollectionStore:
    return FakeCollectionStore()
