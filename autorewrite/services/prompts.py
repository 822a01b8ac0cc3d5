import json

from autorewrite.shopify.models import Product

UNIVERSAL_TAG = "Univerzálny"
BASE_CATEGORIES = ["Interiér", "Exteriér", "Starostlivosť o auto", "Vychytávky", "Oblečenie", "Doplnky"]
SUBTAG_AREAS = ["Interiér", "Exteriér", "Komponenty", "Oblečenie"]


def rewrite_system_prompt(language: str) -> str:
    return (
        f"You edit Shopify products for a car-accessories store. Every output value must be in {language} "
        "(abbreviations such as LED or USB are fine). Return only a JSON object with the keys: "
        "title (string), description (string), base_tags (array), subtags (array), extra_tags (array), "
        "collections (array), options (array of {name, position?, values?}). Never invent parameters "
        "that are not in the input.\n"
        "Rules:\n"
        "1) Title: short and descriptive, no emoji. A variant or adjective goes after a dash: "
        "\"Fólia na okno – priesvitná\".\n"
        "2) Description: a short intro paragraph (problem -> solution), then the sections "
        "\"<strong>🚗 Výhody:</strong>\" (at least 4 bullets starting with ✅), "
        "\"<strong>📦 Špecifikácia:</strong>\" (bullets starting with •, only parameters from the input, "
        "omit the brand when it is NoEnName_Null) and \"<strong>🎯 Pre koho je určený:</strong>\" "
        "(at least 3 bullets starting with •). One blank line before every heading, none after it.\n"
        f"3) Base tags: either concrete car brands (brands may be combined) or \"{UNIVERSAL_TAG}\" plus exactly "
        f"one of: {' | '.join(BASE_CATEGORIES)}. A universal product gets only those two tags.\n"
        f"4) Subtags: \"{{Brand}} {{{'|'.join(SUBTAG_AREAS)}}}\", exactly one area per brand "
        "(e.g. \"Audi Exteriér\", \"Peugeot Exteriér\").\n"
        "5) Extra tags: free keywords (models, electrics, lighting...).\n"
        "6) Collections: derived only from base tags and subtags. A brand product belongs to the brand "
        "collection and its subtag collection (e.g. Audi, Audi Exteriér); a universal product only to its "
        "base category collection.\n"
        "7) Options: with one option rename it to \"Varianty\" and translate all values; with two or more "
        "translate option names and all values (Color -> Farba, pcs -> ks, Black -> čierna). Always return the "
        "complete translated value list for each option, in the original order, so variants map index-to-index.\n"
        "Return pure JSON without comments or extra text."
    )


SLUG_PICK_SYSTEM_PROMPT = (
    "TASK: choose exactly the node_slug values from the provided allowed_leaves list that best match the "
    "product.\n"
    "- Return only JSON {\"collections_node_slugs\": [...]}.\n"
    "- Use ONLY node_slug values from allowed_leaves. If unsure, return an empty array.\n"
    "- Do not return other keys, names or text."
)

REWRITE_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "description": {"type": "string"},
        "base_tags": {"type": "array", "items": {"type": "string"}},
        "subtags": {"type": "array", "items": {"type": "string"}},
        "extra_tags": {"type": "array", "items": {"type": "string"}},
        "collections": {"type": "array", "items": {"type": "string"}},
        "options": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "position": {"type": ["integer", "null"]},
                    "values": {"type": ["array", "null"], "items": {"type": "string"}},
                },
                "required": ["name"],
            },
        },
    },
    "required": ["title", "description", "base_tags", "subtags", "extra_tags", "options"],
}

SLUG_PICK_SCHEMA = {
    "type": "object",
    "properties": {
        "collections_node_slugs": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["collections_node_slugs"],
}


def build_rewrite_prompt(product: Product) -> str:
    options = [o.model_dump(include={"name", "position", "values"}) for o in product.options]
    variants = [
        {"id": v.id, "title": v.title, "selectedOptions": [so.model_dump() for so in v.selected_options]}
        for v in product.variants
    ]
    return (
        f"ORIGINAL_TITLE: {product.title}\n"
        f"ORIGINAL_DESCRIPTION (HTML or text): {product.description_html}\n"
        f"VENDOR: {product.vendor}\n"
        f"EXISTING_TAGS (comma separated): {','.join(product.tags)}\n"
        f"OPTIONS (JSON): {json.dumps(options, ensure_ascii=False)}\n"
        f"VARIANTS (JSON): {json.dumps(variants, ensure_ascii=False)}\n"
        "GOAL: return JSON with the keys:\n"
        "- title (string)\n"
        "- description (string)\n"
        "- base_tags (array of string)\n"
        "- subtags (array of string)\n"
        "- extra_tags (array of string)\n"
        "- collections (array of string, optional, may stay empty)\n"
        "- options (array of { name, position?, values? }); values, when given, are the complete new list\n"
    )


def build_slug_pick_payload(product: Product, allowed_leaves: list[dict], taxonomy_tree=None) -> dict:
    payload = {
        "product": {
            "title": product.title,
            "vendor": product.vendor,
            "tags": product.tags[:20],
            "description": product.description_html[:2000],
        },
        "allowed_leaves": allowed_leaves,
    }
    if taxonomy_tree is not None:
        payload["taxonomy_tree"] = taxonomy_tree
    return payload
