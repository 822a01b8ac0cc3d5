import json
import logging
from pathlib import Path

from autorewrite.shopify.models import RemoteCollection
from autorewrite.taxonomy.normalize import normalize_for_match

logger = logging.getLogger(__name__)


class CollectionIndex:
    """
    Process-lifetime title -> collection id table.

    Populated once (from the collections map file written by
    scripts/export_collections_map.py) and read-only afterwards; a miss just
    means the caller falls back to the live REST lookup.
    """

    def __init__(self, entries: dict[str, int] | None = None):
        self._by_title: dict[str, int] = dict(entries or {})

    @classmethod
    def from_records(cls, records) -> "CollectionIndex":
        entries = {}
        for rec in records or []:
            if not isinstance(rec, dict) or not rec.get("title") or not rec.get("id"):
                continue
            entries[normalize_for_match(rec["title"])] = int(rec["id"])
        return cls(entries)

    @classmethod
    def from_file(cls, path: str | None) -> "CollectionIndex":
        if not path or not Path(path).exists():
            logger.info("Collections map %s not present; using live lookups only", path)
            return cls()
        try:
            records = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Collections map file not loaded: {e}")
            return cls()
        index = cls.from_records(records if isinstance(records, list) else [])
        logger.info(f"Collections map loaded from file with {len(index)} items")
        return index

    @staticmethod
    def to_records(collections: list[RemoteCollection]) -> list[dict]:
        return [{"id": c.id, "title": c.title} for c in collections]

    def lookup(self, title: str) -> int | None:
        return self._by_title.get(normalize_for_match(title))

    def __len__(self) -> int:
        return len(self._by_title)
