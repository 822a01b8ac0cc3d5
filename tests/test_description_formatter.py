"""Tests for the description layout normalizer."""

from __future__ import annotations

from autorewrite.services.description_formatter import format_description


class TestFormatDescription:
    def test_sections_and_bullets(self) -> None:
        raw = "Úvod.\n🚗 Výhody:\n✅ A ✅ B\n📦 Špecifikácia: • X\n🎯 Pre koho je určený: • Y"
        assert format_description(raw) == (
            "Úvod.<br><br><strong>🚗 Výhody:</strong><br>✅ A<br>✅ B"
            "<br><br><strong>📦 Špecifikácia:</strong><br>• X"
            "<br><br><strong>🎯 Pre koho je určený:</strong><br>• Y"
        )

    def test_already_bold_heading(self) -> None:
        raw = "Intro <strong>🚗 Výhody:</strong> ✅ A ✅ B"
        assert format_description(raw) == "Intro<br><br><strong>🚗 Výhody:</strong><br>✅ A<br>✅ B"

    def test_collapses_blank_line_runs(self) -> None:
        assert format_description("A\n\n\n\nB") == "A<br><br>B"

    def test_empty(self) -> None:
        assert format_description("") == ""
        assert format_description(None) == ""
