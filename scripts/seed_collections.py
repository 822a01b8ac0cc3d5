import asyncio, sys, os

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(ROOT)

from autorewrite.config import settings
from autorewrite.services.context import EnrichmentContext
from autorewrite.services.taxonomy_seeder import seed_taxonomy


async def main():
    dry_run = "--dry-run" in sys.argv
    context = EnrichmentContext.from_settings(settings)

    print(f"=== SEED TAXONOMY COLLECTIONS (dry_run={dry_run}) ===")
    summary = await seed_taxonomy(context, dry_run=dry_run)

    print("\n--- Summary ---")
    print(f"Brand roots:  {summary.roots}")
    print(f"Nodes:        {summary.nodes}")
    print(f"Diagnostics:  {len(summary.diagnostics)}")
    for entry in summary.diagnostics:
        print(f"  ❌ {entry['operation']}: {entry['error']}")


if __name__ == "__main__":
    asyncio.run(main())
