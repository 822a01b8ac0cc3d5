import logging
import re

from pydantic import BaseModel

from autorewrite.services.ai_service import OpenAIService, RewriteOutput
from autorewrite.services.prompts import build_slug_pick_payload
from autorewrite.shopify.models import Product
from autorewrite.taxonomy.models import ClassificationResult, LeafEntry, TaxonomyNode
from autorewrite.taxonomy.normalize import normalize_simple
from autorewrite.taxonomy.store import TaxonomyStore, leaves_under

logger = logging.getLogger(__name__)

# keyword -> canonical brand label; order is the tie-break priority
BRAND_KEYWORDS: list[tuple[str, str]] = [
    ("audi", "AUDI"),
    ("bmw", "BMW"),
    ("mercedes-benz", "MERCEDES-BENZ"),
    ("mercedes", "MERCEDES-BENZ"),
    ("škoda", "ŠKODA"),
    ("skoda", "ŠKODA"),
    ("volkswagen", "VOLKSWAGEN"),
    ("vw", "VOLKSWAGEN"),
    ("seat", "SEAT"),
    ("peugeot", "PEUGEOT"),
    ("citroen", "CITROEN"),
    ("renault", "RENAULT"),
    ("ford", "FORD"),
    ("toyota", "TOYOTA"),
    ("honda", "HONDA"),
    ("hyundai", "HYUNDAI"),
    ("kia", "KIA"),
    ("mazda", "MAZDA"),
    ("opel", "OPEL"),
    ("nissan", "NISSAN"),
    ("fiat", "FIAT"),
    ("volvo", "VOLVO"),
    ("mini", "MINI"),
    ("porsche", "PORSCHE"),
    ("tesla", "TESLA"),
    ("dacia", "DACIA"),
]

# high-signal phrases only; restricted to slugs present in the current whitelist
KEYWORD_TO_SLUG: dict[str, list[str]] = {
    "volanty": ["volant", "steering wheel"],
    "kryty-zrkadiel": ["kryt zrkadla", "kryty zrkadiel", "mirror cover"],
    "ambientne-osvetlenie": ["ambientne osvetlenie", "ambient light"],
}

TOKEN_STOPWORDS = {
    "a", "na", "do", "pre", "pod", "nad", "pri", "po", "z", "s", "bez", "auto", "ine", "ostatne",
    "material", "drobny", "drobne", "autopoistky", "karoseria", "ochrana",
}

MIN_TOKEN_LENGTH = 4


def detect_brand(product: Product, ai_tags: list[str] | None = None) -> str | None:
    """First brand keyword (in table order) found anywhere in vendor, title, tags and AI tags."""
    hay = " ".join(
        str(s).lower() for s in [product.vendor, product.title, *product.tags, *(ai_tags or [])] if s
    )
    for keyword, label in BRAND_KEYWORDS:
        if keyword in hay:
            return label
    return None


def brand_of_tag(tag: str) -> str | None:
    first = (tag or "").strip().split(" ", 1)[0].lower()
    for keyword, label in BRAND_KEYWORDS:
        if first == keyword:
            return label
    return None


def distinct_tag_brands(tags: list[str]) -> list[str]:
    brands = []
    for tag in tags:
        label = brand_of_tag(tag)
        if label and label not in brands:
            brands.append(label)
    return brands


def is_generic_slug(slug: str) -> bool:
    s = normalize_simple(slug)
    return s == "ine" or s.endswith("-ine")


def product_match_text(product: Product) -> str:
    return normalize_simple(" ".join([product.title, product.description_html, *product.tags]))


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def keyword_slug_match(product: Product, leaves: list[LeafEntry]) -> str | None:
    text = product_match_text(product)
    whitelist = {leaf.slug for leaf in leaves}
    for slug, keywords in KEYWORD_TO_SLUG.items():
        if slug not in whitelist:
            continue
        if any(normalize_simple(kw) in text for kw in keywords):
            return slug
    return None


def slug_tokens(slug: str) -> list[str]:
    parts = (normalize_simple(p) for p in re.split(r"[-_ ]+", slug or ""))
    return [t for t in parts if len(t) >= MIN_TOKEN_LENGTH and t not in TOKEN_STOPWORDS]


def token_overlap_match(product: Product, leaves: list[LeafEntry]) -> str | None:
    """Non-generic leaf whose slug tokens occur most often (word-boundary prefix match) in the product text."""
    text = product_match_text(product)
    best_slug, best_score = None, 0
    for leaf in leaves:
        # a generic leaf would win on the area word alone
        if is_generic_slug(leaf.slug):
            continue
        tokens = slug_tokens(leaf.slug)
        if not tokens:
            continue
        score = sum(len(re.findall(rf"\b{re.escape(t)}\w*\b", text)) for t in tokens)
        if score > best_score:
            best_slug, best_score = leaf.slug, score
    return best_slug if best_score > 0 else None


SLUG_FINDERS = (("keyword", keyword_slug_match), ("token_overlap", token_overlap_match))


def refine_slug_picks(
    raw_picks: list[str], brand: str | None, product: Product, leaves: list[LeafEntry],
) -> tuple[list[str], str | None]:
    """
    Keep the AI's judgement when it picked anything non-generic; otherwise try
    the deterministic keyword table, then token-overlap scoring. Returns the
    picks with the step that decided them, or the original picks and None when
    nothing gave a signal.
    """
    cleaned = [str(s) for s in raw_picks or [] if s]
    non_generic = [s for s in cleaned if not is_generic_slug(s)]
    if non_generic:
        return _dedupe(non_generic), "ai_slug_pick"
    for step, finder in SLUG_FINDERS:
        hit = finder(product, leaves)
        if hit:
            logger.info("Auto-refined %s slug picks %s -> %s via %s", brand, cleaned, hit, step)
            return [hit], step
    return cleaned, None


def auto_refine(raw_picks: list[str], brand: str | None, product: Product, leaves: list[LeafEntry]) -> list[str]:
    picks, _ = refine_slug_picks(raw_picks, brand, product, leaves)
    return picks


def preferred_area(brand: str, ai_collections: list[str]) -> str | None:
    """Area word following the brand in AI collection names, e.g. "AUDI Interiér" -> "interier"."""
    b = normalize_simple(brand)
    for c in ai_collections or []:
        parts = normalize_simple(c).split(" ")
        if b in parts:
            idx = parts.index(b)
            if idx + 1 < len(parts) and parts[idx + 1]:
                return parts[idx + 1]
    return None


class StrategyOutcome(BaseModel):
    slugs: list[str] = []
    collection_names: list[str] = []
    decided_by: str | None = None


class ClassificationContext:
    def __init__(self, product: Product, brand: str, rewrite: RewriteOutput | None, leaves: list[LeafEntry]):
        self.product = product
        self.brand = brand
        self.rewrite = rewrite
        self.leaves = leaves
        self.ai_picks: list[str] = []


class ClassificationStrategy:
    """One attempt in the chain: a confident outcome, or None to defer to the next one."""

    name = "strategy"

    async def attempt(self, ctx: ClassificationContext) -> StrategyOutcome | None:
        raise NotImplementedError


class SlugPickStrategy(ClassificationStrategy):
    """AI pick from the whitelist, refined by auto_refine when it is empty or generic."""

    name = "slug_pick"

    def __init__(self, classifier: "BrandLeafClassifier"):
        self.classifier = classifier

    async def attempt(self, ctx):
        try:
            ctx.ai_picks = await self.classifier.pick_leaf_slugs(ctx.product, ctx.leaves)
        except Exception as e:
            logger.warning("AI slug-pick failed: %s", e)
            ctx.ai_picks = []
        logger.info("AI slug picks => %s", ctx.ai_picks)
        picks, step = refine_slug_picks(ctx.ai_picks, ctx.brand, ctx.product, ctx.leaves)
        return StrategyOutcome(slugs=picks, decided_by=step) if step else None


class _NameResolvingStrategy(ClassificationStrategy):
    def __init__(self, taxonomy: TaxonomyStore):
        self.taxonomy = taxonomy

    def resolves_under_brand(self, name: str, brand: str) -> list[TaxonomyNode]:
        branch = self.taxonomy.find_branch_by_leaf_name(name)
        root = self.taxonomy.find_brand_root(brand)
        if branch and root is not None and branch[0] is root and len(branch) > 1:
            return branch
        return []


class AiCollectionNameStrategy(_NameResolvingStrategy):
    """Most specific AI-suggested collection name that exists under the brand root."""

    name = "ai_collection_name"

    async def attempt(self, ctx):
        best_name, best_depth = None, 0
        for name in (ctx.rewrite.collections if ctx.rewrite else []):
            depth = len(self.resolves_under_brand(name, ctx.brand))
            if depth > best_depth:
                best_name, best_depth = name, depth
        return StrategyOutcome(collection_names=[best_name]) if best_name else None


class TagFallbackStrategy(_NameResolvingStrategy):
    """
    Derive "{BRAND} {Area}" from brand subtags such as "Audi Exteriér" or
    "VW Interiér" and keep the first one that resolves in the taxonomy.
    """

    name = "tag_fallback"

    async def attempt(self, ctx):
        tags = list(ctx.rewrite.subtags if ctx.rewrite else []) + list(ctx.product.tags)
        for tag in tags:
            if brand_of_tag(tag) != ctx.brand:
                continue
            parts = tag.strip().split(" ", 1)
            if len(parts) < 2 or not parts[1].strip():
                continue
            name = f"{ctx.brand} {parts[1].strip()}"
            if self.resolves_under_brand(name, ctx.brand):
                return StrategyOutcome(collection_names=[name])
        return None


class ClassificationChain:
    def __init__(self, strategies: list[ClassificationStrategy]):
        self.strategies = strategies

    async def run(self, ctx: ClassificationContext) -> ClassificationResult:
        for strategy in self.strategies:
            outcome = await strategy.attempt(ctx)
            if outcome is not None:
                logger.info("Classification decided by %s: %s", strategy.name, outcome.model_dump())
                return ClassificationResult(
                    detected_brand=ctx.brand,
                    leaf_slug_picks=outcome.slugs,
                    collection_names=outcome.collection_names,
                    strategy=outcome.decided_by or strategy.name,
                )
        # no confident signal: hand back whatever the AI picked (possibly generic or empty)
        return ClassificationResult(detected_brand=ctx.brand, leaf_slug_picks=list(ctx.ai_picks))


class BrandLeafClassifier:
    def __init__(self, taxonomy: TaxonomyStore, ai_service: OpenAIService, strategies: list[ClassificationStrategy] | None = None):
        self.taxonomy = taxonomy
        self.ai_service = ai_service
        self.chain = ClassificationChain(strategies or [
            SlugPickStrategy(self),
            AiCollectionNameStrategy(taxonomy),
            TagFallbackStrategy(taxonomy),
        ])

    def whitelist_leaves(self, brand: str, ai_collections: list[str] | None = None) -> list[LeafEntry]:
        area = preferred_area(brand, ai_collections or [])
        if area:
            top = self.taxonomy.find_brand_child(brand, area)
            if top is not None:
                return leaves_under(top)
        return self.taxonomy.brand_leaves(brand)

    async def pick_leaf_slugs(self, product: Product, leaves: list[LeafEntry]) -> list[str]:
        """AI pick constrained to the whitelist; anything outside it is dropped here."""
        if not leaves:
            return []
        allowed = [{"slug": leaf.slug, "label": leaf.label} for leaf in leaves]
        raw = await self.ai_service.pick_collection_slugs(build_slug_pick_payload(product, allowed))
        allowed_slugs = {leaf.slug for leaf in leaves}
        rejected = [s for s in raw if s not in allowed_slugs]
        if rejected:
            logger.warning("Discarding slugs outside the whitelist: %s", rejected)
        return [s for s in raw if s in allowed_slugs]

    async def classify(self, product: Product, rewrite: RewriteOutput | None) -> ClassificationResult:
        ai_tags = [*(rewrite.base_tags if rewrite else []), *(rewrite.subtags if rewrite else [])]
        brand = detect_brand(product, ai_tags)
        if not brand:
            logger.warning("Brand not detected -> skipping collection classification")
            return ClassificationResult()

        tag_brands = distinct_tag_brands([*product.tags, *(rewrite.base_tags if rewrite else [])])
        if len(tag_brands) > 1:
            logger.warning("Multi-brand product %s -> skipping brand-specific classification", tag_brands)
            return ClassificationResult()

        leaves = self.whitelist_leaves(brand, rewrite.collections if rewrite else [])
        ctx = ClassificationContext(product, brand, rewrite, leaves)
        return await self.chain.run(ctx)

    def resolve_branches(self, result: ClassificationResult) -> list[list[TaxonomyNode]]:
        """Root-to-leaf branches for every pick, de-duplicated by leaf."""
        branches: list[list[TaxonomyNode]] = []
        seen: set[int] = set()
        root = self.taxonomy.find_brand_root(result.detected_brand)
        candidates = [self.taxonomy.find_branch_by_slug(root, slug) for slug in result.leaf_slug_picks]
        candidates += [self.taxonomy.find_branch_by_leaf_name(name) for name in result.collection_names]
        for branch in candidates:
            if not branch:
                continue
            if id(branch[-1]) in seen:
                continue
            seen.add(id(branch[-1]))
            branches.append(branch)
        return branches
