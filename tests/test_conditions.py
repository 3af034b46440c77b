"""Tests for docimport.conditions: condition AST evaluation."""
from __future__ import annotations

import re
from typing import Any

import pytest

from docimport.analysis import ParagraphAnalysis
from docimport.conditions import (
    Always,
    Composite,
    ContentPattern,
    FontMatch,
    FormatElements,
    Formatting,
    HeadingText,
    Indent,
    Not,
    Numbering,
    Predicate,
    SectionContext,
    Shading,
    StyleMatch,
    StyleSet,
    all_of,
    any_of,
    describe,
    evaluate,
    negate,
    parse_gray_fill,
)


def _para(**kwargs: Any) -> ParagraphAnalysis:
    return ParagraphAnalysis(**kwargs)


# ── StyleMatch ───────────────────────────────────────────────────────


class TestStyleMatch:
    def test_contains_ignore_case(self) -> None:
        assert evaluate(StyleMatch("code"), _para(style_id="SourceCode"))

    def test_exact(self) -> None:
        assert evaluate(StyleMatch("Title", mode="exact"), _para(style_id="title"))
        assert not evaluate(StyleMatch("Title", mode="exact"), _para(style_id="Subtitle"))

    def test_exact_case_sensitive(self) -> None:
        cond = StyleMatch("Title", mode="exact", ignore_case=False)
        assert not evaluate(cond, _para(style_id="title"))

    def test_starts_with(self) -> None:
        assert evaluate(StyleMatch("Heading", mode="starts_with"), _para(style_id="Heading2"))

    def test_regex(self) -> None:
        cond = StyleMatch(r"^Heading\d+$", mode="regex", ignore_case=False)
        assert evaluate(cond, _para(style_id="Heading3"))
        assert not evaluate(cond, _para(style_id="HeadingX"))

    def test_missing_style(self) -> None:
        assert not evaluate(StyleMatch("code"), _para(style_id=None))

    def test_invalid_mode(self) -> None:
        with pytest.raises(ValueError):
            StyleMatch("x", mode="fuzzy")


# ── Leaves ───────────────────────────────────────────────────────────


class TestFontMatch:
    def test_case_insensitive(self) -> None:
        cond = FontMatch(frozenset({"Consolas"}))
        assert evaluate(cond, _para(font_family="consolas"))
        assert not evaluate(cond, _para(font_family="Arial"))
        assert not evaluate(cond, _para(font_family=None))

    def test_plain_set_is_accepted(self) -> None:
        cond = FontMatch({"Consolas"})  # type: ignore[arg-type]
        assert isinstance(cond.fonts, frozenset)
        assert evaluate(cond, _para(font_family="CONSOLAS"))


class TestShading:
    @pytest.mark.parametrize("fill", ["E0E0E0", "C8C8C8", "d9d9d9"])
    def test_gray(self, fill: str) -> None:
        assert evaluate(Shading(), _para(shading_fill=fill))

    @pytest.mark.parametrize(
        "fill",
        ["FFFFFF", "FAFAFA", "808080", "FF0000", "E0E0", "GGGGGG", "auto", None],
    )
    def test_not_gray(self, fill: str | None) -> None:
        assert not evaluate(Shading(), _para(shading_fill=fill))

    def test_parse_gray_fill(self) -> None:
        assert parse_gray_fill("0A0B0C") == (10, 11, 12)
        assert parse_gray_fill("xyz123") is None


class TestFormatting:
    def test_bold_italic(self) -> None:
        cond = Formatting(bold=True, italic=False)
        assert evaluate(cond, _para(all_bold=True))
        assert not evaluate(cond, _para(all_bold=True, all_italic=True))

    def test_min_size_fails_when_unknown(self) -> None:
        assert not evaluate(Formatting(min_font_size=12), _para(font_size_pt=None))
        assert evaluate(Formatting(min_font_size=12), _para(font_size_pt=14))

    def test_max_size_passes_when_unknown(self) -> None:
        assert evaluate(Formatting(max_font_size=12), _para(font_size_pt=None))
        assert not evaluate(Formatting(max_font_size=12), _para(font_size_pt=14))

    def test_all_caps(self) -> None:
        assert evaluate(Formatting(all_caps=True), _para(all_caps=True))


class TestContentPattern:
    def test_modes(self) -> None:
        a = _para(text="Theorem 1. Let x be")
        assert evaluate(ContentPattern("theorem", mode="starts_with"), a)
        assert evaluate(ContentPattern("let x"), a)
        assert not evaluate(ContentPattern("let x", mode="starts_with"), a)
        assert evaluate(ContentPattern(r"Theorem.*be", mode="full"), a)

    def test_empty_text(self) -> None:
        assert not evaluate(ContentPattern(".*"), _para(text=""))

    def test_bad_regex_rejected_at_construction(self) -> None:
        with pytest.raises(re.error):
            ContentPattern("(unclosed")


class TestStructuralLeaves:
    def test_numbering(self) -> None:
        a = _para(has_numbering=True, is_numbered_list=False)
        assert evaluate(Numbering(has_numbering=True), a)
        assert not evaluate(Numbering(is_numbered=True), a)
        assert evaluate(Numbering(), a)

    def test_format_elements(self) -> None:
        a = _para(has_math=True)
        assert evaluate(FormatElements(has_math=True), a)
        assert not evaluate(FormatElements(has_math=True, has_drawings=True), a)

    def test_section_context(self) -> None:
        a = _para(current_section="references", in_abstract_section=False)
        assert evaluate(SectionContext(allowed=frozenset({"references"})), a)
        assert not evaluate(SectionContext(disallowed=frozenset({"references"})), a)
        assert not evaluate(SectionContext(in_abstract=True), a)

    def test_section_context_rejects_unknown_section(self) -> None:
        with pytest.raises(ValueError, match="refrences"):
            SectionContext(allowed=frozenset({"refrences"}))
        with pytest.raises(ValueError):
            SectionContext(disallowed=frozenset({"methods", "bogus"}))

    def test_indent(self) -> None:
        a = _para(indent_left_twips=720, has_left_border=False)
        assert evaluate(Indent(min_indent_twips=720), a)
        assert not evaluate(Indent(min_indent_twips=721), a)
        assert not evaluate(Indent(has_left_border=True), a)

    def test_heading_text(self) -> None:
        cond = HeadingText(frozenset({"Abstract"}))
        assert evaluate(cond, _para(text="  ABSTRACT "))
        assert not evaluate(cond, _para(text="Abstracts"))
        assert not evaluate(cond, _para(text=""))

    def test_style_set(self) -> None:
        cond = StyleSet(frozenset({"Quote", "Code"}))
        assert evaluate(cond, _para(style_id="IntenseQuote"))
        assert not evaluate(cond, _para(style_id="Normal"))
        assert not evaluate(cond, _para(style_id=None))

    def test_plain_sets_in_text_leaves(self) -> None:
        heading = HeadingText({"Abstract"})  # type: ignore[arg-type]
        styles = StyleSet({"Quote"})  # type: ignore[arg-type]
        assert evaluate(heading, _para(text="abstract"))
        assert evaluate(styles, _para(style_id="BlockQuote"))

    def test_always(self) -> None:
        assert evaluate(Always(), _para())

    def test_predicate(self) -> None:
        cond = Predicate(lambda a: len(a.text) > 3, "long text")
        assert evaluate(cond, _para(text="long"))
        assert not evaluate(cond, _para(text="no"))


# ── Compound ─────────────────────────────────────────────────────────


class TestCompound:
    def test_and_or_not(self) -> None:
        a = _para(style_id="Code", font_family="Arial")
        style = StyleMatch("code")
        font = FontMatch(frozenset({"Consolas"}))
        assert not evaluate(all_of(style, font), a)
        assert evaluate(any_of(style, font), a)
        assert evaluate(negate(font), a)

    def test_short_circuit(self) -> None:
        def boom(_: ParagraphAnalysis) -> bool:
            raise AssertionError("should not be evaluated")

        a = _para()
        assert evaluate(any_of(Always(), Predicate(boom, "boom")), a)
        assert not evaluate(all_of(negate(Always()), Predicate(boom, "boom")), a)

    def test_empty_composites(self) -> None:
        assert evaluate(all_of(), _para())
        assert not evaluate(any_of(), _para())

    def test_invalid_mode(self) -> None:
        with pytest.raises(ValueError):
            Composite("xor", ())

    def test_not_node(self) -> None:
        assert isinstance(negate(Always()), Not)


class TestDescribe:
    def test_leaf(self) -> None:
        assert describe(StyleMatch("Title", mode="exact")) == "StyleId exact 'Title'"

    def test_compound(self) -> None:
        cond = all_of(Always(), negate(Predicate(lambda a: True, "custom")))
        assert describe(cond) == "AND(Always, NOT(custom))"

    def test_font_preview(self) -> None:
        text = describe(FontMatch(frozenset({"A", "B", "C", "D"})))
        assert text == "FontFamily in [A, B, C...]"
