"""Tests for docimport.models: element variants, spans and trace entries."""
from __future__ import annotations

import base64
from typing import Any

import pytest

from docimport.models import (
    ELEMENT_KINDS,
    THEOREM_KINDS,
    TRACE_RAW_TEXT_LIMIT,
    AbstractElement,
    BibliographyEntryElement,
    BlockquoteElement,
    CodeBlockElement,
    EquationElement,
    FormattingSpan,
    HeadingElement,
    ImageElement,
    ListItemElement,
    PageBreakElement,
    ParagraphElement,
    TableCell,
    TableElement,
    TheoremElement,
    TraceEntry,
    element_to_dict,
    paragraph_style_for,
    truncate_raw_text,
)


def _trace(**overrides: object) -> TraceEntry:
    base: dict[str, object] = {
        "body_index": 0,
        "element_type": "paragraph",
        "raw_text": "Hello",
        "full_text": "Hello",
        "matched_rule_id": "paragraph",
        "detected_type": "paragraph",
        "elements_produced": 1,
        "current_section": "unknown",
        "in_abstract_section": False,
    }
    base.update(overrides)
    return TraceEntry(**base)  # type: ignore[arg-type]


# ── paragraph_style_for ──────────────────────────────────────────────


class TestParagraphStyleFor:
    def test_none_is_normal(self) -> None:
        assert paragraph_style_for(None) == "normal"

    def test_quote(self) -> None:
        assert paragraph_style_for("IntenseQuote") == "quote"

    def test_subtitle_not_shadowed_by_title(self) -> None:
        assert paragraph_style_for("Subtitle") == "subtitle"

    def test_title(self) -> None:
        assert paragraph_style_for("Title") == "title"

    def test_caption(self) -> None:
        assert paragraph_style_for("FigureCaption") == "caption"

    def test_other(self) -> None:
        assert paragraph_style_for("BodyText") == "normal"


# ── FormattingSpan ───────────────────────────────────────────────────


class TestFormattingSpan:
    def test_end(self) -> None:
        assert FormattingSpan(start=3, length=4, type="bold").end == 7

    def test_overlaps(self) -> None:
        a = FormattingSpan(start=0, length=5, type="bold")
        b = FormattingSpan(start=4, length=2, type="italic")
        c = FormattingSpan(start=5, length=2, type="italic")
        assert a.overlaps(b)
        assert not a.overlaps(c)

    def test_contains_half_open(self) -> None:
        span = FormattingSpan(start=2, length=3, type="underline")
        assert span.contains(2)
        assert span.contains(4)
        assert not span.contains(5)

    def test_str(self) -> None:
        span = FormattingSpan(start=0, length=2, type="font_color", value="#FF0000")
        assert str(span) == "font_color[0..2]=#FF0000"

    def test_rejects_negative_start(self) -> None:
        with pytest.raises(ValueError):
            FormattingSpan(start=-1, length=1, type="bold")

    def test_rejects_unknown_type(self) -> None:
        with pytest.raises(ValueError):
            FormattingSpan(start=0, length=1, type="blink")

    def test_from_dict(self) -> None:
        span = FormattingSpan.from_dict({"start": 1, "length": 2, "type": "italic"})
        assert span == FormattingSpan(start=1, length=2, type="italic")


# ── Elements ─────────────────────────────────────────────────────────


class TestElements:
    def test_kinds_cover_vocabulary(self) -> None:
        kinds = {
            cls.kind for cls in (
                PageBreakElement, HeadingElement, ParagraphElement, EquationElement,
                CodeBlockElement, TableElement, ImageElement, ListItemElement,
                AbstractElement, TheoremElement, BlockquoteElement,
                BibliographyEntryElement,
            )
        }
        assert kinds == ELEMENT_KINDS

    def test_frozen(self) -> None:
        heading = HeadingElement(order=0, level=1, text="Intro")
        with pytest.raises(AttributeError):
            heading.level = 2  # type: ignore[misc]

    def test_image_pixel_size(self) -> None:
        image = ImageElement(order=0, width_emu=914400, height_emu=457200)
        assert image.width_px == pytest.approx(96.0)
        assert image.height_px == pytest.approx(48.0)

    def test_image_pixel_size_unknown(self) -> None:
        assert ImageElement(order=0).width_px is None

    def test_table_counts(self) -> None:
        table = TableElement(
            order=0,
            rows=(
                (TableCell("a"), TableCell("b"), TableCell("c")),
                (TableCell("d"), TableCell("e"), TableCell("f")),
            ),
        )
        assert table.row_count == 2
        assert table.column_count == 3

    def test_empty_table_counts(self) -> None:
        table = TableElement(order=0)
        assert table.row_count == 0
        assert table.column_count == 0

    def test_theorem_kinds(self) -> None:
        assert len(THEOREM_KINDS) == 15
        assert "theorem" in THEOREM_KINDS

    @pytest.mark.parametrize(
        "build",
        [
            lambda: ParagraphElement(order=0, text="x", style="heading"),
            lambda: CodeBlockElement(order=0, text="x", reason="guess"),
            lambda: TheoremElement(order=0, theorem_kind="claim", text="x", reason="style_name"),
            lambda: TheoremElement(order=0, theorem_kind="lemma", text="x", reason="guess"),
            lambda: BlockquoteElement(order=0, text="x", reason="guess"),
            lambda: BibliographyEntryElement(order=0, text="x", reason="guess"),
        ],
    )
    def test_rejects_values_outside_vocabulary(self, build: Any) -> None:
        with pytest.raises(ValueError):
            build()

    def test_accepts_vocabulary_values(self) -> None:
        assert TheoremElement(
            order=0, theorem_kind="lemma", text="x", reason="content_pattern"
        ).reason == "content_pattern"
        assert BlockquoteElement(order=0, text="x", reason="left_border").reason == "left_border"


class TestElementToDict:
    def test_kind_first(self) -> None:
        out = element_to_dict(HeadingElement(order=3, level=2, text="Methods"))
        assert next(iter(out)) == "kind"
        assert out["kind"] == "heading"
        assert out["order"] == 3
        assert out["level"] == 2

    def test_bytes_base64(self) -> None:
        out = element_to_dict(ImageElement(order=0, data=b"\x89PNG"))
        assert out["data"] == base64.b64encode(b"\x89PNG").decode("ascii")

    def test_spans_serialized(self) -> None:
        element = ParagraphElement(
            order=0, text="Hi", formatting=(FormattingSpan(0, 2, "bold"),)
        )
        out = element_to_dict(element)
        assert out["formatting"] == [
            {"start": 0, "length": 2, "type": "bold", "value": None}
        ]

    def test_table_cells_serialized(self) -> None:
        out = element_to_dict(TableElement(order=1, rows=((TableCell("x"),),)))
        assert out["rows"] == [
            [{"text": "x", "formatting": [], "col_span": 1, "row_span": 1}]
        ]


# ── TraceEntry ───────────────────────────────────────────────────────


class TestTraceEntry:
    def test_frozen(self) -> None:
        entry = _trace()
        with pytest.raises(AttributeError):
            entry.detected_type = "heading"  # type: ignore[misc]

    def test_to_dict_lists(self) -> None:
        out = _trace(rule_errors=("code.font: build: boom",)).to_dict()
        assert out["rule_errors"] == ["code.font: build: boom"]
        assert out["matched_rule_id"] == "paragraph"

    def test_rejects_unknown_detected_type(self) -> None:
        with pytest.raises(ValueError):
            _trace(detected_type="sidebar")
        assert _trace(detected_type="dropped").detected_type == "dropped"

    def test_rejects_unknown_section(self) -> None:
        with pytest.raises(ValueError):
            _trace(current_section="refrences")

    def test_truncate_raw_text(self) -> None:
        text = "x" * (TRACE_RAW_TEXT_LIMIT + 10)
        assert len(truncate_raw_text(text)) == TRACE_RAW_TEXT_LIMIT
        assert truncate_raw_text("short") == "short"
