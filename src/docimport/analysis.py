"""Per-paragraph feature snapshot consumed by every detection rule.

The extraction layer builds one ``ParagraphAnalysis`` per paragraph so that
rules never re-walk the underlying document tree. The snapshot is frozen;
the pipeline injects section context through ``with_context`` which returns
a copy.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, replace
from typing import Any

from docimport.models import FormattingSpan


@dataclass(frozen=True, slots=True)
class DrawingRef:
    """An embedded picture found in a paragraph, ready for image extraction."""

    data: bytes = b""
    mime_type: str = ""
    filename: str | None = None
    alt_text: str | None = None
    width_emu: int | None = None
    height_emu: int | None = None
    relationship_id: str | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> DrawingRef:
        raw = payload.get("data", b"")
        data = base64.b64decode(raw) if isinstance(raw, str) else bytes(raw)
        return cls(
            data=data,
            mime_type=str(payload.get("mime_type", "")),
            filename=payload.get("filename"),
            alt_text=payload.get("alt_text"),
            width_emu=_opt_int(payload.get("width_emu")),
            height_emu=_opt_int(payload.get("height_emu")),
            relationship_id=payload.get("relationship_id"),
        )


@dataclass(frozen=True, slots=True)
class ParagraphAnalysis:
    """Everything a rule may look at for one paragraph.

    Measurements follow the word-processing format: indentation in twips
    (1/1440 inch), font size in points, shading as a 6-digit hex fill.
    ``current_section`` / ``in_abstract_section`` are filled in by the
    pipeline from the section tracker right before rule evaluation.
    """

    style_id: str | None = None
    text: str = ""
    formatting: tuple[FormattingSpan, ...] = ()
    font_family: str | None = None
    font_size_pt: float | None = None
    all_bold: bool = False
    all_italic: bool = False
    all_caps: bool = False
    first_run_bold: bool = False
    has_numbering: bool = False
    is_numbered_list: bool = False
    numbering_level: int = 0
    numbering_id: int | None = None
    list_marker: str | None = None
    has_math: bool = False
    math_nodes: tuple[str, ...] = ()
    has_drawings: bool = False
    drawings: tuple[DrawingRef, ...] = ()
    has_page_breaks: bool = False
    page_break_count: int = 0
    shading_fill: str | None = None
    outline_level: int | None = None
    indent_left_twips: int = 0
    has_left_border: bool = False
    current_section: str = "unknown"
    in_abstract_section: bool = False

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    def with_context(
        self, current_section: str, in_abstract_section: bool
    ) -> ParagraphAnalysis:
        """Return a copy carrying the tracker's section context."""
        return replace(
            self,
            current_section=current_section,
            in_abstract_section=in_abstract_section,
        )

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ParagraphAnalysis:
        """Build a snapshot from the extraction layer's JSON hand-off.

        Missing ``has_*`` flags are derived from the matching collections,
        and ``all_caps`` is derived from the text when absent.
        """
        text = str(payload.get("text") or "")
        formatting = tuple(
            FormattingSpan.from_dict(s) for s in payload.get("formatting") or ()
        )
        math_nodes = tuple(str(m) for m in payload.get("math_nodes") or ())
        drawings = tuple(
            DrawingRef.from_dict(d) for d in payload.get("drawings") or ()
        )
        page_break_count = int(payload.get("page_break_count") or 0)
        has_page_breaks = bool(payload.get("has_page_breaks", page_break_count > 0))
        if has_page_breaks and page_break_count == 0:
            page_break_count = 1

        all_caps = payload.get("all_caps")
        if all_caps is None:
            all_caps = bool(text) and text == text.upper() and any(
                c.isalpha() for c in text
            )

        return cls(
            style_id=payload.get("style_id"),
            text=text,
            formatting=formatting,
            font_family=payload.get("font_family"),
            font_size_pt=_opt_float(payload.get("font_size_pt")),
            all_bold=bool(payload.get("all_bold", False)),
            all_italic=bool(payload.get("all_italic", False)),
            all_caps=bool(all_caps),
            first_run_bold=bool(
                payload.get("first_run_bold", payload.get("all_bold", False))
            ),
            has_numbering=bool(payload.get("has_numbering", False)),
            is_numbered_list=bool(payload.get("is_numbered_list", False)),
            numbering_level=int(payload.get("numbering_level") or 0),
            numbering_id=_opt_int(payload.get("numbering_id")),
            list_marker=payload.get("list_marker"),
            has_math=bool(payload.get("has_math", bool(math_nodes))),
            math_nodes=math_nodes,
            has_drawings=bool(payload.get("has_drawings", bool(drawings))),
            drawings=drawings,
            has_page_breaks=has_page_breaks,
            page_break_count=page_break_count,
            shading_fill=payload.get("shading_fill"),
            outline_level=_opt_int(payload.get("outline_level")),
            indent_left_twips=int(payload.get("indent_left_twips") or 0),
            has_left_border=bool(payload.get("has_left_border", False)),
        )


def _opt_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def _opt_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)
