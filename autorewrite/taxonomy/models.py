from typing import List

from pydantic import BaseModel, Field, field_validator


class TaxonomyNode(BaseModel):
    name: str
    node_slug: str = ""
    facets: List[str] = []
    children: List["TaxonomyNode"] = []

    @field_validator("facets", mode="before")
    @classmethod
    def _split_facets(cls, v):
        # allow comma-separated string
        if v is None:
            return []
        if isinstance(v, str):
            return [x.strip() for x in v.split(",") if x.strip()]
        return v

    @field_validator("node_slug", mode="before")
    @classmethod
    def _slug_str(cls, v):
        return "" if v is None else str(v)

    @property
    def is_leaf(self) -> bool:
        return not self.children and bool(self.node_slug)


class LeafEntry(BaseModel):
    node: TaxonomyNode
    path: List[str]

    @property
    def slug(self) -> str:
        return self.node.node_slug

    @property
    def label(self) -> str:
        return " → ".join(self.path)


class EnsuredBranchNode(BaseModel):
    collection_id: int
    title: str
    node_slug: str = ""
    facets: List[str] = []
    level: int
    parent_id: int | None = None
    child_id: int | None = None


class ClassificationResult(BaseModel):
    detected_brand: str | None = None
    leaf_slug_picks: List[str] = Field(default_factory=list)
    collection_names: List[str] = Field(default_factory=list)
    strategy: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.leaf_slug_picks and not self.collection_names
