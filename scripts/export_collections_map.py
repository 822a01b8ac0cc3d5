import asyncio, json, sys, os

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(ROOT)

from autorewrite.config import settings
from autorewrite.services.collection_index import CollectionIndex
from autorewrite.services.context import EnrichmentContext


async def main():
    out_path = sys.argv[1] if len(sys.argv) > 1 else settings.COLLECTIONS_MAP_PATH
    context = EnrichmentContext.from_settings(settings)

    collections = await context.collections.list_custom_collections()
    records = CollectionIndex.to_records(collections)

    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(records, f, ensure_ascii=False, indent=2)

    print(f"✅ Exported {len(records)} custom collections to {out_path}")


if __name__ == "__main__":
    asyncio.run(main())
