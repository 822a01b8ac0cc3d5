"""Tests for index-to-index remapping of variant option values."""

from __future__ import annotations

from autorewrite.services.variant_remapper import new_values_by_position, remap
from tests.fakes import ai_option, make_product


def values_by_variant(updates) -> dict[str, dict[int, str]]:
    return {u.variant_id: u.option_values for u in updates}


class TestNewValuesByPosition:
    def test_only_options_with_value_lists(self) -> None:
        options = [ai_option("Farba", values=["čierna", "biela"]), ai_option("Veľkosť")]
        assert new_values_by_position(options) == {1: ["čierna", "biela"]}

    def test_explicit_position_wins(self) -> None:
        assert new_values_by_position([ai_option("Farba", position=2, values=["čierna"])]) == {2: ["čierna"]}

    def test_empty(self) -> None:
        assert new_values_by_position([]) == {}


class TestRemap:
    def test_translates_index_for_index(self) -> None:
        product = make_product(colors=["Black", "White"])

        updates = remap(product, {1: ["čierna", "biela"]})

        assert values_by_variant(updates) == {
            "gid://shopify/ProductVariant/100": {1: "čierna"},
            "gid://shopify/ProductVariant/101": {1: "biela"},
        }

    def test_short_replacement_list_passes_value_through(self) -> None:
        updates = remap(make_product(colors=["Black", "White"]), {1: ["čierna"]})
        assert values_by_variant(updates)["gid://shopify/ProductVariant/101"] == {1: "White"}

    def test_no_replacement_passes_values_through(self) -> None:
        updates = remap(make_product(colors=["Black", "White"]), {})
        assert [u.option_values for u in updates] == [{1: "Black"}, {1: "White"}]

    def test_value_missing_from_original_list_passes_through(self) -> None:
        product = make_product(colors=["Black", "White"])
        product.options[0].values = ["Red"]

        updates = remap(product, {1: ["červená"]})

        assert [u.option_values for u in updates] == [{1: "Black"}, {1: "White"}]
