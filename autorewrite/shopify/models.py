from typing import List, Optional

from pydantic import BaseModel

from autorewrite.shopify.client import gid_to_numeric


class ProductOption(BaseModel):
    id: Optional[str] = None
    name: str
    position: int
    values: List[str] = []


class SelectedOption(BaseModel):
    name: str
    value: str


class Variant(BaseModel):
    id: str
    title: Optional[str] = None
    selected_options: List[SelectedOption] = []


class Product(BaseModel):
    id: str
    title: str = ""
    vendor: str = ""
    description_html: str = ""
    tags: List[str] = []
    options: List[ProductOption] = []
    variants: List[Variant] = []
    processed: bool = False

    @property
    def legacy_id(self) -> str | None:
        return gid_to_numeric(self.id)

    @classmethod
    def from_graphql(cls, node: dict) -> "Product":
        options = [
            ProductOption(
                id=o.get("id"),
                name=o.get("name") or "",
                position=o.get("position") or i + 1,
                values=list(o.get("values") or []),
            )
            for i, o in enumerate(node.get("options") or [])
        ]
        variants = []
        for edge in (node.get("variants") or {}).get("edges") or []:
            v = edge.get("node") or {}
            variants.append(Variant(
                id=v["id"],
                title=v.get("title"),
                selected_options=[SelectedOption(**so) for so in v.get("selectedOptions") or []],
            ))
        processed = any(
            (e.get("node") or {}).get("key") == "processed" and (e.get("node") or {}).get("value") == "true"
            for e in (node.get("metafields") or {}).get("edges") or []
        )
        return cls(
            id=node["id"],
            title=node.get("title") or "",
            vendor=node.get("vendor") or "",
            description_html=node.get("descriptionHtml") or "",
            tags=list(node.get("tags") or []),
            options=options,
            variants=variants,
            processed=processed,
        )


class RemoteCollection(BaseModel):
    id: int
    title: str
    image_src: Optional[str] = None

    @classmethod
    def from_rest(cls, data: dict) -> "RemoteCollection":
        image = data.get("image") or {}
        return cls(id=int(data["id"]), title=data.get("title") or "", image_src=image.get("src"))


class VariantUpdate(BaseModel):
    variant_id: str
    # 1-based option position -> new value
    option_values: dict[int, str] = {}
