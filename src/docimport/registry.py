"""Default detection rules.

``build_default_rules(options)`` assembles the stock policy into the
priority bands documented in ``docimport.rules``:

    pagebreak              10   page breaks (+ trailing content)
    heading.style         100   Heading1..Heading9 style ids
    abstract.title-style  105   Title/Subtitle "Abstract" -> consumed, opens abstract
    title-subtitle.other  106   remaining Title/Subtitle -> paragraph
    heading.custom        110   *title* / *section* / *chapter* style ids
    heading.outline       120   outline level
    heading.formatting    130   numbering / caps / bold+size heuristics
    list                  300   numbering properties
    equation              400   math-only paragraphs
    abstract.style        500   abstract style patterns
    abstract.section      510   inside an abstract section
    bibliography.section  520   entries under a references heading
    theorem.style         600   theorem style patterns
    theorem.content       610   bold "Theorem 1." lead-in
    blockquote.style      620   quote style patterns
    blockquote.indent     630   deep indent + italic
    blockquote.border     640   left border
    code.style            700   code style patterns
    code.font             710   monospace font
    code.shading          720   gray shading
    image                 800   drawings
    paragraph             999   fallback

Title/Subtitle rules sit at 105/106 so they run before heading.custom,
whose "title" substring test would otherwise claim them.
"""
from __future__ import annotations

import re

from docimport.analysis import ParagraphAnalysis
from docimport.conditions import (
    Always,
    ContentPattern,
    FontMatch,
    FormatElements,
    Formatting,
    Indent,
    Numbering,
    Predicate,
    SectionContext,
    Shading,
    StyleMatch,
    StyleSet,
    all_of,
    any_of,
    negate,
)
from docimport.config import DetectionOptions
from docimport.factory import ElementFactory
from docimport.keywords import is_abstract_keyword
from docimport.models import (
    AbstractElement,
    BibliographyEntryElement,
    BlockquoteElement,
    CodeBlockElement,
    HeadingElement,
    ImportElement,
    TheoremElement,
)
from docimport.rules import DetectionRule, ElementBuilder
from docimport.tracker import SectionTracker

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_HEADING_STYLE_RE = re.compile(r"^Heading(\d+)$")
_DIGITS_RE = re.compile(r"\d+")

# "1. Introduction", "2.3 Results"
_NUMBERED_HEADING_RE = re.compile(r"^(\d+(?:\.\d+)*)\s*\.?\s+([A-Z])")
# "IV. Discussion"
_ROMAN_HEADING_RE = re.compile(r"^([IVXLC]+)\.\s+\w", re.IGNORECASE)

_BIB_BRACKET_RE = re.compile(r"^\[(\d+)\]")
_BIB_NUMBERED_RE = re.compile(r"^\d+\.\s")
_BIB_AUTHOR_YEAR_RE = re.compile(r"^[A-Z][a-z]+.*(?:\(\d{4}\)|,\s*\d{4})", re.DOTALL)

# Minimum left indent (twips) for a hanging-indent bibliography entry.
_BIB_HANGING_INDENT = 360
_BIB_MIN_LENGTH = 20
# Minimum left indent (twips) for an indented italic blockquote.
_BLOCKQUOTE_INDENT = 720

_THEOREM_KEYWORDS = (
    "Theorem|Lemma|Proposition|Corollary|Conjecture|Definition|Example"
    "|Remark|Proof|Axiom|Assumption"
)
_THEOREM_LEAD_PATTERN = rf"({_THEOREM_KEYWORDS})\s*(\d[\d.]*)?\.?\s"
_THEOREM_SPLIT_RE = re.compile(
    rf"^({_THEOREM_KEYWORDS})\s*(\d[\d.]*?)?\.?\s+(.*)$",
    re.IGNORECASE | re.DOTALL,
)

# Substring -> theorem kind, first hit wins; no hit means "theorem".
_THEOREM_KIND_ORDER: tuple[str, ...] = (
    "lemma", "proposition", "corollary", "conjecture", "definition",
    "example", "remark", "proof", "algorithm", "exercise", "solution",
    "axiom", "assumption", "note",
)


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------

def heading_level_from_style(style_id: str | None, options: DetectionOptions) -> int | None:
    """Level N for a ``HeadingN`` style id inside the configured bounds."""
    if not style_id:
        return None
    m = _HEADING_STYLE_RE.match(style_id)
    if not m:
        return None
    level = int(m.group(1))
    if not 1 <= level <= 9:
        return None
    if options.min_heading_level <= level <= options.max_heading_level:
        return level
    return None


def heading_level_from_outline(
    outline_level: int | None, options: DetectionOptions
) -> int | None:
    """0-based outline level + 1, inside the configured bounds."""
    if outline_level is None:
        return None
    level = outline_level + 1
    if options.min_heading_level <= level <= options.max_heading_level:
        return level
    return None


def custom_style_heading_level(style_id: str) -> int:
    """Level for *section* / *chapter* style ids with a 1-6 suffix, else 1."""
    lower = style_id.lower()
    if "section" in lower or "chapter" in lower:
        m = _DIGITS_RE.search(style_id)
        if m and 1 <= int(m.group()) <= 6:
            return int(m.group())
    return 1


def detect_heading_by_formatting(analysis: ParagraphAnalysis) -> int | None:
    """Heading level 1-6 from numbering, caps and font cues, or None.

    Checks, in order: "1.2 Title" numbering, Roman numerals, short all-caps
    lines, then bold text by font size.
    """
    text = analysis.text.strip()
    if not text or len(text) > 200:
        return None

    bold = analysis.all_bold
    size = analysis.font_size_pt

    m = _NUMBERED_HEADING_RE.match(text)
    if m:
        dots = m.group(1).count(".")
        level = min(dots + 1, 6)
        if dots >= 1 and len(text) < 100:
            return level
        if bold or (size is not None and size >= 11):
            return level

    m = _ROMAN_HEADING_RE.match(text)
    if m and (bold or (size is not None and size >= 11)):
        return 1 if len(m.group(1)) <= 2 else 2

    if len(text) <= 50 and text == text.upper() and any(c.isalpha() for c in text):
        if bold or (size is not None and size >= 12):
            return 1

    if bold and size is not None and size >= 14:
        return 1
    if bold and size is not None and size >= 12:
        return 2
    return None


def heading_level_for(analysis: ParagraphAnalysis, options: DetectionOptions) -> int | None:
    """Best heading level from style, then outline, then (if enabled) formatting."""
    level = heading_level_from_style(analysis.style_id, options)
    if level is not None:
        return level
    level = heading_level_from_outline(analysis.outline_level, options)
    if level is not None:
        return level
    if options.detect_headings_by_formatting:
        return detect_heading_by_formatting(analysis)
    return None


def classify_theorem_kind(label: str | None) -> str:
    """Map a style id or lead-in keyword onto a theorem environment kind."""
    if not label:
        return "theorem"
    lower = label.lower()
    for kind in _THEOREM_KIND_ORDER:
        if kind in lower:
            return kind
    return "theorem"


def split_theorem_lead(text: str) -> tuple[str, str | None, str]:
    """Split "Lemma 2.1. Body" into ("lemma", "2.1", "Body").

    Text without a recognizable lead-in comes back whole as a theorem.
    """
    m = _THEOREM_SPLIT_RE.match(text)
    if not m:
        return "theorem", None, text
    return classify_theorem_kind(m.group(1)), m.group(2) or None, m.group(3)


def looks_like_bibliography_entry(analysis: ParagraphAnalysis) -> bool:
    if analysis.is_blank:
        return False
    text = analysis.text.strip()
    if _BIB_BRACKET_RE.match(text):
        return True
    if _BIB_NUMBERED_RE.match(text):
        return True
    if _BIB_AUTHOR_YEAR_RE.match(text):
        return True
    return analysis.indent_left_twips >= _BIB_HANGING_INDENT and len(text) > _BIB_MIN_LENGTH


def bibliography_label(text: str) -> str | None:
    m = _BIB_BRACKET_RE.match(text.strip())
    return m.group(1) if m else None


# ---------------------------------------------------------------------------
# Page breaks (0-99)
# ---------------------------------------------------------------------------

def _page_break_rule(options: DetectionOptions) -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        results: list[ImportElement] = [
            factory.create_page_break() for _ in range(a.page_break_count)
        ]
        if not a.is_blank and not (
            options.detect_abstract_by_style and is_abstract_keyword(a.text)
        ):
            paragraph = factory.create_paragraph(a)
            if paragraph is not None:
                results.append(paragraph)
        # Abstract keyword text emits nothing; the abstract block renders its own title.
        return results or None

    def on_match(a: ParagraphAnalysis, tracker: SectionTracker) -> None:
        if a.is_blank:
            return
        if options.detect_abstract_by_style and is_abstract_keyword(a.text):
            tracker.begin_abstract_section()
            tracker.on_heading_encountered(a.text, 1)
            return
        level = heading_level_for(a, options)
        if level is not None:
            tracker.on_heading_encountered(a.text, level)

    return DetectionRule(
        id="pagebreak",
        name="Page Break",
        priority=10,
        target="page_break",
        condition=FormatElements(has_page_breaks=True),
        build=build,
        on_match=on_match,
    )


# ---------------------------------------------------------------------------
# Headings (100-199)
# ---------------------------------------------------------------------------

def _heading(a: ParagraphAnalysis, factory: ElementFactory, level: int) -> list[ImportElement]:
    return [
        HeadingElement(
            order=factory.next_order(),
            level=level,
            text=a.text,
            formatting=factory.formatting_for(a),
            style_id=a.style_id,
        )
    ]


def _heading_style_rule(options: DetectionOptions) -> DetectionRule:
    def level_of(a: ParagraphAnalysis) -> int | None:
        return heading_level_from_style(a.style_id, options)

    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        level = level_of(a)
        return None if level is None else _heading(a, factory, level)

    def on_match(a: ParagraphAnalysis, tracker: SectionTracker) -> None:
        tracker.on_heading_encountered(a.text, level_of(a) or 1)

    return DetectionRule(
        id="heading.style",
        name="Heading by Style",
        priority=100,
        target="heading",
        condition=Predicate(
            lambda a: level_of(a) is not None,
            "Heading style with level in configured range",
        ),
        build=build,
        on_match=on_match,
    )


_TITLE_OR_SUBTITLE = any_of(
    StyleMatch("Title", mode="exact"),
    StyleMatch("Subtitle", mode="exact"),
)


def _abstract_title_style_rule() -> DetectionRule:
    def on_match(a: ParagraphAnalysis, tracker: SectionTracker) -> None:
        tracker.on_title_or_subtitle_encountered(a.text)

    return DetectionRule(
        id="abstract.title-style",
        name="Abstract via Title/Subtitle Style",
        priority=105,
        target="abstract",
        condition=all_of(
            _TITLE_OR_SUBTITLE,
            Predicate(lambda a: is_abstract_keyword(a.text), "Text is abstract keyword"),
        ),
        # Consumed without output: the abstract block renders its own title.
        build=lambda a, factory: [],
        on_match=on_match,
    )


def _title_subtitle_other_rule() -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        if a.is_blank:
            return None
        style = "title" if (a.style_id or "").lower() == "title" else "subtitle"
        paragraph = factory.create_paragraph(a, style=style)
        return [paragraph] if paragraph is not None else None

    def on_match(a: ParagraphAnalysis, tracker: SectionTracker) -> None:
        if tracker.in_abstract_section:
            tracker.end_abstract_section()

    return DetectionRule(
        id="title-subtitle.other",
        name="Title/Subtitle (non-abstract)",
        priority=106,
        target="paragraph",
        condition=_TITLE_OR_SUBTITLE,
        build=build,
        on_match=on_match,
    )


def _heading_custom_style_rule() -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        return _heading(a, factory, custom_style_heading_level(a.style_id or ""))

    def on_match(a: ParagraphAnalysis, tracker: SectionTracker) -> None:
        tracker.on_heading_encountered(a.text, custom_style_heading_level(a.style_id or ""))

    return DetectionRule(
        id="heading.custom",
        name="Heading by Custom Style",
        priority=110,
        target="heading",
        condition=any_of(
            all_of(StyleMatch("title"), negate(StyleMatch("subtitle"))),
            StyleMatch("section"),
            StyleMatch("chapter"),
        ),
        build=build,
        on_match=on_match,
    )


def _heading_outline_rule(options: DetectionOptions) -> DetectionRule:
    def level_of(a: ParagraphAnalysis) -> int | None:
        return heading_level_from_outline(a.outline_level, options)

    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        level = level_of(a)
        return None if level is None else _heading(a, factory, level)

    def on_match(a: ParagraphAnalysis, tracker: SectionTracker) -> None:
        tracker.on_heading_encountered(a.text, level_of(a) or 1)

    return DetectionRule(
        id="heading.outline",
        name="Heading by Outline Level",
        priority=120,
        target="heading",
        condition=Predicate(lambda a: level_of(a) is not None, "OutlineLevel in range"),
        build=build,
        on_match=on_match,
    )


def _heading_formatting_rule() -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        level = detect_heading_by_formatting(a)
        return None if level is None else _heading(a, factory, level)

    def on_match(a: ParagraphAnalysis, tracker: SectionTracker) -> None:
        level = detect_heading_by_formatting(a)
        if level is not None:
            tracker.on_heading_encountered(a.text, level)

    return DetectionRule(
        id="heading.formatting",
        name="Heading by Formatting Heuristics",
        priority=130,
        target="heading",
        condition=Predicate(
            lambda a: detect_heading_by_formatting(a) is not None,
            "Formatting-based heading heuristics",
        ),
        build=build,
        on_match=on_match,
    )


# ---------------------------------------------------------------------------
# Lists (300-399) and equations (400-499)
# ---------------------------------------------------------------------------

def _list_rule() -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        item = factory.create_list_item(a)
        return [item] if item is not None else None

    return DetectionRule(
        id="list",
        name="List Item",
        priority=300,
        target="list_item",
        condition=Numbering(has_numbering=True),
        build=build,
        on_match=lambda a, tracker: tracker.end_abstract_section(),
    )


def _equation_rule() -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        equations = factory.create_equations(a)
        return list(equations) if equations else None

    return DetectionRule(
        id="equation",
        name="Equation",
        priority=400,
        target="equation",
        condition=all_of(
            FormatElements(has_math=True),
            Predicate(
                lambda a: bool(a.math_nodes) and a.is_blank,
                "Paragraph contains only math elements",
            ),
        ),
        build=build,
    )


# ---------------------------------------------------------------------------
# Section-context types (500-599)
# ---------------------------------------------------------------------------

def _abstract(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
    if a.is_blank:
        return None
    return [
        AbstractElement(
            order=factory.next_order(),
            text=a.text,
            formatting=factory.formatting_for(a),
            style_id=a.style_id,
        )
    ]


def _abstract_style_rule(options: DetectionOptions) -> DetectionRule:
    return DetectionRule(
        id="abstract.style",
        name="Abstract by Style",
        priority=500,
        target="abstract",
        condition=StyleSet(options.abstract_style_patterns),
        build=_abstract,
    )


def _abstract_section_rule() -> DetectionRule:
    return DetectionRule(
        id="abstract.section",
        name="Abstract by Section Context",
        priority=510,
        target="abstract",
        condition=SectionContext(in_abstract=True),
        build=_abstract,
    )


def _bibliography_section_rule() -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        if a.is_blank:
            return None
        return [
            BibliographyEntryElement(
                order=factory.next_order(),
                text=a.text,
                reason="section_context",
                label=bibliography_label(a.text),
                formatting=factory.formatting_for(a),
                style_id=a.style_id,
            )
        ]

    return DetectionRule(
        id="bibliography.section",
        name="Bibliography Entry by Section Context",
        priority=520,
        target="bibliography_entry",
        condition=all_of(
            SectionContext(allowed=frozenset({"references"})),
            Predicate(looks_like_bibliography_entry, "Text matches bibliography entry patterns"),
        ),
        build=build,
    )


# ---------------------------------------------------------------------------
# Semantic types (600-699)
# ---------------------------------------------------------------------------

def _theorem_style_rule(options: DetectionOptions) -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        if a.is_blank:
            return None
        return [
            TheoremElement(
                order=factory.next_order(),
                theorem_kind=classify_theorem_kind(a.style_id),
                text=a.text,
                reason="style_name",
                formatting=factory.formatting_for(a),
                style_id=a.style_id,
            )
        ]

    return DetectionRule(
        id="theorem.style",
        name="Theorem by Style",
        priority=600,
        target="theorem",
        condition=StyleSet(options.theorem_style_patterns),
        build=build,
    )


def _theorem_content_rule() -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        if a.is_blank:
            return None
        kind, number, body = split_theorem_lead(a.text)
        return [
            TheoremElement(
                order=factory.next_order(),
                theorem_kind=kind,
                text=body,
                reason="content_pattern",
                number=number,
                formatting=factory.formatting_for(a),
                style_id=a.style_id,
            )
        ]

    return DetectionRule(
        id="theorem.content",
        name="Theorem by Content Pattern",
        priority=610,
        target="theorem",
        condition=all_of(
            ContentPattern(_THEOREM_LEAD_PATTERN, mode="starts_with"),
            Predicate(lambda a: a.first_run_bold, "First run is bold"),
        ),
        build=build,
    )


def _blockquote_builder(reason: str) -> ElementBuilder:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        if a.is_blank:
            return None
        return [
            BlockquoteElement(
                order=factory.next_order(),
                text=a.text,
                reason=reason,
                formatting=factory.formatting_for(a),
                style_id=a.style_id,
            )
        ]

    return build


def _blockquote_style_rule(options: DetectionOptions) -> DetectionRule:
    return DetectionRule(
        id="blockquote.style",
        name="Blockquote by Style",
        priority=620,
        target="blockquote",
        condition=StyleSet(options.blockquote_style_patterns),
        build=_blockquote_builder("style_name"),
    )


def _blockquote_indent_rule() -> DetectionRule:
    return DetectionRule(
        id="blockquote.indent",
        name="Blockquote by Indent + Italic",
        priority=630,
        target="blockquote",
        condition=all_of(
            Indent(min_indent_twips=_BLOCKQUOTE_INDENT),
            Numbering(has_numbering=False),
            Formatting(italic=True),
        ),
        build=_blockquote_builder("indent_italic"),
    )


def _blockquote_border_rule() -> DetectionRule:
    return DetectionRule(
        id="blockquote.border",
        name="Blockquote by Left Border",
        priority=640,
        target="blockquote",
        condition=all_of(Indent(has_left_border=True), Numbering(has_numbering=False)),
        build=_blockquote_builder("left_border"),
    )


# ---------------------------------------------------------------------------
# Code blocks (700-799)
# ---------------------------------------------------------------------------

def _code_builder(reason: str) -> ElementBuilder:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        return [
            CodeBlockElement(
                order=factory.next_order(),
                text=a.text,
                reason=reason,
                style_id=a.style_id,
                font_family=a.font_family,
            )
        ]

    return build


def _code_style_rule(options: DetectionOptions) -> DetectionRule:
    return DetectionRule(
        id="code.style",
        name="Code Block by Style",
        priority=700,
        target="code_block",
        condition=StyleSet(options.code_style_patterns),
        build=_code_builder("style_name"),
    )


def _code_font_rule(options: DetectionOptions) -> DetectionRule:
    return DetectionRule(
        id="code.font",
        name="Code Block by Monospace Font",
        priority=710,
        target="code_block",
        condition=FontMatch(options.monospace_fonts),
        build=_code_builder("monospace_font"),
    )


def _code_shading_rule() -> DetectionRule:
    return DetectionRule(
        id="code.shading",
        name="Code Block by Shading",
        priority=720,
        target="code_block",
        condition=Shading(),
        build=_code_builder("shading"),
    )


# ---------------------------------------------------------------------------
# Images (800-899) and fallback (900-999)
# ---------------------------------------------------------------------------

def _image_rule() -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        if not a.has_drawings:
            return None
        refs = factory.drawings_for(a)
        if not refs:
            return None
        # Paragraph text precedes its pictures in the output.
        results: list[ImportElement] = []
        paragraph = factory.create_paragraph(a)
        if paragraph is not None:
            results.append(paragraph)
        results.extend(factory.create_images(refs))
        return results

    return DetectionRule(
        id="image",
        name="Image",
        priority=800,
        target="image",
        condition=FormatElements(has_drawings=True),
        build=build,
    )


def _paragraph_fallback_rule() -> DetectionRule:
    def build(a: ParagraphAnalysis, factory: ElementFactory) -> list[ImportElement] | None:
        paragraph = factory.create_paragraph(a)
        # Blank paragraphs are consumed, not unmatched.
        return [paragraph] if paragraph is not None else []

    return DetectionRule(
        id="paragraph",
        name="Paragraph (Fallback)",
        priority=999,
        target="paragraph",
        condition=Always(),
        build=build,
    )


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def build_default_rules(options: DetectionOptions | None = None) -> list[DetectionRule]:
    """Assemble the default rule set gated by *options* toggles.

    The returned list is in registration order; the pipeline sorts by
    priority. ``options.disabled_rule_ids`` is applied by the pipeline, not
    here, so disabled rules still show up in catalogs.
    """
    options = options or DetectionOptions()
    rules: list[DetectionRule] = [
        _page_break_rule(options),
        _heading_style_rule(options),
        _abstract_title_style_rule(),
        _title_subtitle_other_rule(),
        _heading_custom_style_rule(),
        _heading_outline_rule(options),
    ]
    if options.detect_headings_by_formatting:
        rules.append(_heading_formatting_rule())

    rules.append(_list_rule())
    rules.append(_equation_rule())

    if options.detect_abstract_by_style:
        rules.append(_abstract_style_rule(options))
    rules.append(_abstract_section_rule())
    if options.detect_bibliography_entries:
        rules.append(_bibliography_section_rule())

    if options.detect_theorem_environments:
        rules.append(_theorem_style_rule(options))
        rules.append(_theorem_content_rule())
    if options.detect_blockquotes_by_style:
        rules.append(_blockquote_style_rule(options))
    if options.detect_blockquotes_by_indent:
        rules.append(_blockquote_indent_rule())
        rules.append(_blockquote_border_rule())

    if options.detect_code_by_style:
        rules.append(_code_style_rule(options))
    if options.detect_code_by_font:
        rules.append(_code_font_rule(options))
    if options.detect_code_by_shading:
        rules.append(_code_shading_rule())

    if options.extract_images:
        rules.append(_image_rule())

    rules.append(_paragraph_fallback_rule())
    return rules
