"""Core types shared by every layer of the detection engine.

All element and trace dataclasses are frozen and use slots=True. Closed
vocabularies are plain string literals (no Enum); constructors reject
values outside the frozensets below.

Type hierarchy:
  FormattingSpan: Character-range formatting run within a paragraph
  TableCell: Single cell of an imported table
  ImportElement: Union of the 12 element variants (PageBreakElement ...)
  TraceEntry: Diagnostic record of how one body element was classified
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Literal

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

type SectionType = Literal[
    "unknown",
    "abstract",
    "introduction",
    "methods",
    "results",
    "discussion",
    "conclusion",
    "references",
    "acknowledgements",
    "appendix",
    "background",
    "literature_review",
    "table_of_contents",
    "list_of_figures",
    "list_of_tables",
]

SECTION_TYPES: frozenset[str] = frozenset({
    "unknown", "abstract", "introduction", "methods", "results",
    "discussion", "conclusion", "references", "acknowledgements",
    "appendix", "background", "literature_review", "table_of_contents",
    "list_of_figures", "list_of_tables",
})

ELEMENT_KINDS: frozenset[str] = frozenset({
    "page_break", "heading", "paragraph", "equation", "code_block", "table",
    "image", "list_item", "abstract", "theorem", "blockquote",
    "bibliography_entry",
})

# Trace-only outcome: no rule condition evaluated true.
DROPPED = "dropped"

PARAGRAPH_STYLES: frozenset[str] = frozenset({
    "normal", "quote", "title", "subtitle", "caption",
})

CODE_BLOCK_REASONS: frozenset[str] = frozenset({
    "style_name", "monospace_font", "shading", "manual",
})

THEOREM_KINDS: frozenset[str] = frozenset({
    "theorem", "lemma", "proposition", "corollary", "conjecture",
    "definition", "example", "remark", "proof", "algorithm", "exercise",
    "solution", "axiom", "assumption", "note",
})

THEOREM_REASONS: frozenset[str] = frozenset({"style_name", "content_pattern"})

BLOCKQUOTE_REASONS: frozenset[str] = frozenset({
    "style_name", "indent_italic", "left_border",
})

BIBLIOGRAPHY_REASONS: frozenset[str] = frozenset({"section_context"})

FORMATTING_TYPES: frozenset[str] = frozenset({
    "bold", "italic", "underline", "strikethrough", "superscript",
    "subscript", "highlight", "font_color", "font_size", "font_family",
})

# Trace raw_text is truncated to this many characters (full_text is not).
TRACE_RAW_TEXT_LIMIT = 500

# 914400 EMU per inch, 96 px per inch.
_EMU_PER_INCH = 914400.0
_PX_PER_INCH = 96


def paragraph_style_for(style_id: str | None) -> str:
    """Map a raw style id onto the coarse ParagraphStyle vocabulary."""
    if not style_id:
        return "normal"
    lower = style_id.lower()
    if "quote" in lower:
        return "quote"
    # "subtitle" contains "title"; test the longer name first.
    if "subtitle" in lower:
        return "subtitle"
    if "title" in lower:
        return "title"
    if "caption" in lower:
        return "caption"
    return "normal"


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FormattingSpan:
    """A formatting run over ``[start, start + length)`` of paragraph text."""

    start: int
    length: int
    type: str  # one of FORMATTING_TYPES
    value: str | None = None  # "#FF0000", "12pt", "Consolas", ...

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"start must be non-negative, got {self.start}")
        if self.length < 0:
            raise ValueError(f"length must be non-negative, got {self.length}")
        if self.type not in FORMATTING_TYPES:
            raise ValueError(f"unknown formatting type: {self.type!r}")

    @property
    def end(self) -> int:
        return self.start + self.length

    def overlaps(self, other: FormattingSpan) -> bool:
        return self.start < other.end and self.end > other.start

    def contains(self, position: int) -> bool:
        return self.start <= position < self.end

    def __str__(self) -> str:
        suffix = f"={self.value}" if self.value is not None else ""
        return f"{self.type}[{self.start}..{self.end}]{suffix}"

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> FormattingSpan:
        return cls(
            start=int(payload["start"]),
            length=int(payload["length"]),
            type=str(payload["type"]),
            value=payload.get("value"),
        )


# ---------------------------------------------------------------------------
# Import elements
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class PageBreakElement:
    kind: ClassVar[str] = "page_break"

    order: int


@dataclass(frozen=True, slots=True)
class HeadingElement:
    kind: ClassVar[str] = "heading"

    order: int
    level: int
    text: str
    formatting: tuple[FormattingSpan, ...] = ()
    style_id: str | None = None


@dataclass(frozen=True, slots=True)
class ParagraphElement:
    kind: ClassVar[str] = "paragraph"

    order: int
    text: str
    formatting: tuple[FormattingSpan, ...] = ()
    style: str = "normal"  # one of PARAGRAPH_STYLES
    style_id: str | None = None

    def __post_init__(self) -> None:
        if self.style not in PARAGRAPH_STYLES:
            raise ValueError(f"unknown paragraph style: {self.style!r}")


@dataclass(frozen=True, slots=True)
class EquationElement:
    """Display equation built from one OMML math node."""

    kind: ClassVar[str] = "equation"

    order: int
    omml: str
    latex: str | None = None
    conversion_succeeded: bool = False
    conversion_error: str | None = None
    inline: bool = False


@dataclass(frozen=True, slots=True)
class CodeBlockElement:
    kind: ClassVar[str] = "code_block"

    order: int
    text: str
    reason: str  # one of CODE_BLOCK_REASONS
    language: str | None = None
    style_id: str | None = None
    font_family: str | None = None

    def __post_init__(self) -> None:
        if self.reason not in CODE_BLOCK_REASONS:
            raise ValueError(f"unknown code block reason: {self.reason!r}")


@dataclass(frozen=True, slots=True)
class TableCell:
    text: str
    formatting: tuple[FormattingSpan, ...] = ()
    col_span: int = 1
    row_span: int = 1


@dataclass(frozen=True, slots=True)
class TableElement:
    kind: ClassVar[str] = "table"

    order: int
    rows: tuple[tuple[TableCell, ...], ...] = ()
    has_header_row: bool = False

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.rows[0]) if self.rows else 0


@dataclass(frozen=True, slots=True)
class ImageElement:
    kind: ClassVar[str] = "image"

    order: int
    data: bytes = b""
    mime_type: str = ""
    filename: str | None = None
    alt_text: str | None = None
    width_emu: int | None = None
    height_emu: int | None = None
    relationship_id: str | None = None

    @property
    def width_px(self) -> float | None:
        if self.width_emu is None:
            return None
        return self.width_emu / _EMU_PER_INCH * _PX_PER_INCH

    @property
    def height_px(self) -> float | None:
        if self.height_emu is None:
            return None
        return self.height_emu / _EMU_PER_INCH * _PX_PER_INCH


@dataclass(frozen=True, slots=True)
class ListItemElement:
    kind: ClassVar[str] = "list_item"

    order: int
    text: str
    formatting: tuple[FormattingSpan, ...] = ()
    level: int = 0
    is_numbered: bool = False
    marker: str | None = None


@dataclass(frozen=True, slots=True)
class AbstractElement:
    kind: ClassVar[str] = "abstract"

    order: int
    text: str
    formatting: tuple[FormattingSpan, ...] = ()
    style_id: str | None = None


@dataclass(frozen=True, slots=True)
class TheoremElement:
    kind: ClassVar[str] = "theorem"

    order: int
    theorem_kind: str  # one of THEOREM_KINDS
    text: str
    reason: str  # one of THEOREM_REASONS
    number: str | None = None
    formatting: tuple[FormattingSpan, ...] = ()
    style_id: str | None = None

    def __post_init__(self) -> None:
        if self.theorem_kind not in THEOREM_KINDS:
            raise ValueError(f"unknown theorem kind: {self.theorem_kind!r}")
        if self.reason not in THEOREM_REASONS:
            raise ValueError(f"unknown theorem reason: {self.reason!r}")


@dataclass(frozen=True, slots=True)
class BlockquoteElement:
    kind: ClassVar[str] = "blockquote"

    order: int
    text: str
    reason: str  # one of BLOCKQUOTE_REASONS
    formatting: tuple[FormattingSpan, ...] = ()
    style_id: str | None = None

    def __post_init__(self) -> None:
        if self.reason not in BLOCKQUOTE_REASONS:
            raise ValueError(f"unknown blockquote reason: {self.reason!r}")


@dataclass(frozen=True, slots=True)
class BibliographyEntryElement:
    kind: ClassVar[str] = "bibliography_entry"

    order: int
    text: str
    reason: str = "section_context"  # one of BIBLIOGRAPHY_REASONS
    label: str | None = None
    formatting: tuple[FormattingSpan, ...] = ()
    style_id: str | None = None

    def __post_init__(self) -> None:
        if self.reason not in BIBLIOGRAPHY_REASONS:
            raise ValueError(f"unknown bibliography reason: {self.reason!r}")


type ImportElement = (
    PageBreakElement
    | HeadingElement
    | ParagraphElement
    | EquationElement
    | CodeBlockElement
    | TableElement
    | ImageElement
    | ListItemElement
    | AbstractElement
    | TheoremElement
    | BlockquoteElement
    | BibliographyEntryElement
)


def _plain(value: Any) -> Any:
    """Recursively convert element payloads into JSON-compatible values."""
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, FormattingSpan):
        return {
            "start": value.start,
            "length": value.length,
            "type": value.type,
            "value": value.value,
        }
    if isinstance(value, TableCell):
        return {
            "text": value.text,
            "formatting": _plain(value.formatting),
            "col_span": value.col_span,
            "row_span": value.row_span,
        }
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def element_to_dict(element: ImportElement) -> dict[str, Any]:
    """Serialize any element variant into a flat JSON-ready dict.

    ``kind`` is always the first key; ``bytes`` payloads (image data) are
    base64-encoded.
    """
    out: dict[str, Any] = {"kind": element.kind}
    for f in fields(element):
        out[f.name] = _plain(getattr(element, f.name))
    return out


# ---------------------------------------------------------------------------
# Trace
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class TraceEntry:
    """One diagnostic record per body element, appended in document order.

    ``matched_rule_id`` is ``"none"`` when no rule matched and ``"n/a"``
    for non-paragraph body elements that bypass the rule engine.
    """

    body_index: int
    element_type: str  # "paragraph" | "table" | ...
    raw_text: str
    full_text: str
    matched_rule_id: str
    detected_type: str  # one of ELEMENT_KINDS or DROPPED
    elements_produced: int
    current_section: SectionType
    in_abstract_section: bool
    matched_rule_name: str | None = None
    style_id: str | None = None
    font_family: str | None = None
    font_size_pt: float | None = None
    all_bold: bool = False
    all_italic: bool = False
    has_numbering: bool = False
    has_math: bool = False
    has_drawings: bool = False
    has_page_breaks: bool = False
    shading_fill: str | None = None
    outline_level: int | None = None
    indent_left_twips: int = 0
    has_left_border: bool = False
    notes: str | None = None
    rule_errors: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.detected_type not in ELEMENT_KINDS and self.detected_type != DROPPED:
            raise ValueError(f"unknown detected type: {self.detected_type!r}")
        if self.current_section not in SECTION_TYPES:
            raise ValueError(f"unknown section type: {self.current_section!r}")

    def to_dict(self) -> dict[str, Any]:
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}


def truncate_raw_text(text: str) -> str:
    """Bound trace raw text to TRACE_RAW_TEXT_LIMIT characters."""
    if len(text) > TRACE_RAW_TEXT_LIMIT:
        return text[:TRACE_RAW_TEXT_LIMIT]
    return text
