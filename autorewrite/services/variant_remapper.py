from autorewrite.shopify.models import Product, VariantUpdate


def new_values_by_position(ai_options: list) -> dict[int, list[str]]:
    """1-based option position -> complete replacement value list, for options that carry values."""
    out: dict[int, list[str]] = {}
    for i, opt in enumerate(ai_options or []):
        values = getattr(opt, "values", None)
        if isinstance(values, list):
            position = getattr(opt, "position", None) or i + 1
            out[int(position)] = [str(v) for v in values]
    return out


def remap(product: Product, replacements: dict[int, list[str]]) -> list[VariantUpdate]:
    """
    Translate every variant's selected option values index-for-index.

    The Nth value of an option's original list maps to the Nth value of its
    replacement list. A value missing from the original list, a replacement
    list that is too short, or no replacement list at all leaves the value
    unchanged.
    """
    position_by_name = {o.name: i + 1 for i, o in enumerate(product.options)}
    values_by_name = {o.name: o.values for o in product.options}

    updates = []
    for variant in product.variants:
        option_values: dict[int, str] = {}
        for so in variant.selected_options:
            position = position_by_name.get(so.name, 0)
            new_value = so.value
            new_list = replacements.get(position)
            if new_list:
                old_values = values_by_name.get(so.name) or []
                if so.value in old_values:
                    idx = old_values.index(so.value)
                    if idx < len(new_list):
                        new_value = new_list[idx]
            if position:
                option_values[position] = new_value
        updates.append(VariantUpdate(variant_id=variant.id, option_values=option_values))
    return updates
