from fastapi import APIRouter, Depends, HTTPException

from autorewrite.api.deps import get_context
from autorewrite.services.context import EnrichmentContext
from autorewrite.taxonomy.store import leaves_under

router = APIRouter()


@router.get("")
def list_roots(context: EnrichmentContext = Depends(get_context)):
    return [
        {"name": root.name, "children": len(root.children), "leaves": len(leaves_under(root))}
        for root in context.taxonomy.load()
    ]


@router.get("/{brand}/leaves")
def list_brand_leaves(brand: str, context: EnrichmentContext = Depends(get_context)):
    if context.taxonomy.find_brand_root(brand) is None:
        raise HTTPException(status_code=404, detail=f"Unknown brand {brand}")
    return [{"slug": leaf.slug, "label": leaf.label} for leaf in context.taxonomy.brand_leaves(brand)]
