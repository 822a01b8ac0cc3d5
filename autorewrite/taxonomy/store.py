import copy
import json
import logging
from pathlib import Path

from autorewrite.taxonomy.models import LeafEntry, TaxonomyNode
from autorewrite.taxonomy.normalize import normalize_for_match

logger = logging.getLogger(__name__)

BRAND_TOKEN = "{{BRAND}}"


class TaxonomyFormatError(ValueError):
    pass


def _is_pre_expanded(raw) -> bool:
    return isinstance(raw, list) or (isinstance(raw, dict) and any(k in raw for k in ("children", "name", "title")))


def _build_node(raw: dict, brand: str | None = None) -> TaxonomyNode:
    if not isinstance(raw, dict):
        raise TaxonomyFormatError(f"taxonomy node must be an object, got {type(raw).__name__}")
    name = raw.get("name") or raw.get("title") or brand or ""
    if brand is not None:
        name = str(name).replace(BRAND_TOKEN, brand)
    slug = raw.get("node_slug")
    if slug is None:
        slug = raw.get("slug")  # compatibility
    children = raw.get("children")
    return TaxonomyNode(
        name=str(name),
        node_slug=slug,
        facets=raw.get("facets"),
        children=[_build_node(ch, brand) for ch in children] if isinstance(children, list) else [],
    )


def build_forest(raw) -> list[TaxonomyNode]:
    """
    Turn a taxonomy definition into a forest of brand roots.

    Two shapes are accepted:
      - a pre-built tree: a list of roots or a single root of
        {name|title, node_slug?, facets?, children?}
      - {"BRANDS": [...], "TEMPLATE": node} where every "{{BRAND}}" token in a
        node name is replaced by the brand, one independent root per brand.
    """
    if _is_pre_expanded(raw):
        roots = raw if isinstance(raw, list) else [raw]
        return [_build_node(r) for r in roots]

    brands = raw.get("BRANDS") if isinstance(raw, dict) else None
    template = raw.get("TEMPLATE") if isinstance(raw, dict) else None
    if not isinstance(brands, list) or not brands or not isinstance(template, dict):
        raise TaxonomyFormatError("unsupported format, expected a pre-built tree or {BRANDS, TEMPLATE}")

    root_template = {
        "name": template.get("title") or template.get("name") or BRAND_TOKEN,
        "node_slug": template.get("node_slug", template.get("slug")),
        "facets": template.get("facets"),
        "children": template.get("children") or [],
    }
    return [_build_node(copy.deepcopy(root_template), str(brand)) for brand in brands]


class TaxonomyStore:
    """
    Read-only view over the brand/category tree.

    The forest is built on the first `load()` and cached for the lifetime of
    the store. A definition that cannot be read or parsed yields an empty
    forest so collection classification degrades instead of failing the
    whole enrichment run.
    """

    def __init__(self, path: str | None = None, definition=None):
        self.path = path
        self._definition = definition
        self._forest: list[TaxonomyNode] | None = None
        self.ambiguous_names: set[str] = set()

    def load(self) -> list[TaxonomyNode]:
        if self._forest is not None:
            return self._forest
        try:
            raw = self._definition
            if raw is None:
                raw = json.loads(Path(self.path).read_text(encoding="utf-8"))
            forest = build_forest(raw)
        except Exception:
            logger.exception("Failed to load/expand taxonomy from %s", self.path or "<inline definition>")
            forest = []
        self._forest = forest
        self.ambiguous_names = self._find_duplicate_names(forest)
        if self.ambiguous_names:
            logger.warning(
                "Taxonomy has %s ambiguous node names (first match wins): %s",
                len(self.ambiguous_names), sorted(self.ambiguous_names)[:20],
            )
        logger.info(f"Taxonomy loaded with {len(forest)} root nodes")
        return forest

    @property
    def roots(self) -> list[TaxonomyNode]:
        return self.load()

    @staticmethod
    def _find_duplicate_names(forest: list[TaxonomyNode]) -> set[str]:
        seen: set[str] = set()
        dupes: set[str] = set()
        stack = list(reversed(forest))
        while stack:
            node = stack.pop()
            key = normalize_for_match(node.name)
            if key in seen:
                dupes.add(key)
            seen.add(key)
            stack.extend(reversed(node.children))
        return dupes

    def find_branch_by_leaf_name(self, name: str) -> list[TaxonomyNode]:
        """Root-to-node path of the first node (depth-first) whose normalized name matches."""
        want = normalize_for_match(name)
        if not want:
            return []
        if want in self.ambiguous_names:
            logger.warning("Taxonomy name %r is ambiguous; using the first match", name)
        for root in self.load():
            path = _dfs_path(root, lambda n: normalize_for_match(n.name) == want)
            if path:
                return path
        return []

    def find_branch_by_slug(self, brand_root: TaxonomyNode | None, slug: str) -> list[TaxonomyNode]:
        if brand_root is None or not slug:
            return []
        return _dfs_path(brand_root, lambda n: n.node_slug == str(slug))

    def find_brand_root(self, brand: str | None) -> TaxonomyNode | None:
        want = normalize_for_match(brand)
        if not want:
            return None
        for root in self.load():
            if normalize_for_match(root.name) == want:
                return root
        return None

    def find_brand_child(self, brand: str | None, area: str | None) -> TaxonomyNode | None:
        """Immediate child of a brand root matched by slug, name, or trailing area word."""
        root = self.find_brand_root(brand)
        want = normalize_for_match(area)
        if root is None or not want:
            return None
        for child in root.children:
            name = normalize_for_match(child.name)
            if normalize_for_match(child.node_slug) == want or name == want or name.endswith(f" {want}"):
                return child
        return None

    def brand_leaves(self, brand: str | None) -> list[LeafEntry]:
        root = self.find_brand_root(brand)
        return leaves_under(root) if root is not None else []


def _dfs_path(root: TaxonomyNode, match) -> list[TaxonomyNode]:
    stack: list[tuple[TaxonomyNode, list[TaxonomyNode]]] = [(root, [root])]
    while stack:
        node, path = stack.pop()
        if match(node):
            return path
        for child in reversed(node.children):
            stack.append((child, path + [child]))
    return []


def leaves_under(node: TaxonomyNode | None) -> list[LeafEntry]:
    """Leaves (no children and a slug) below `node`, each with its root-to-leaf label path."""
    if node is None:
        return []
    leaves: list[LeafEntry] = []

    def walk(n: TaxonomyNode, path: list[str]):
        here = path + [n.name]
        if not n.children:
            if n.node_slug:
                leaves.append(LeafEntry(node=n, path=here))
            return
        for child in n.children:
            walk(child, here)

    walk(node, [])
    return leaves
