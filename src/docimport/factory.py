"""Element construction shared by all rule builders.

``ElementFactory`` owns the document-wide order counter and the pluggable
collaborators of the extraction layer:

* ``equation_converter(omml) -> (latex, ok, error)``: OMML to LaTeX.
* ``image_extractor(analysis) -> list[DrawingRef]``: pictures in a paragraph.

Both are optional. Without a converter, equations keep only their OMML;
without an extractor, the snapshot's own ``drawings`` are used.
"""
from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable, Sequence

from docimport.analysis import DrawingRef, ParagraphAnalysis
from docimport.config import DetectionOptions
from docimport.models import (
    EquationElement,
    FormattingSpan,
    ImageElement,
    ListItemElement,
    PageBreakElement,
    ParagraphElement,
    TableCell,
    TableElement,
    paragraph_style_for,
)

log = logging.getLogger(__name__)

type EquationConverter = Callable[[str], tuple[str | None, bool, str | None]]
type ImageExtractor = Callable[[ParagraphAnalysis], Sequence[DrawingRef]]


def _snapshot_drawings(analysis: ParagraphAnalysis) -> Sequence[DrawingRef]:
    return analysis.drawings


class ElementFactory:
    """Builds elements and hands out monotonically increasing order indexes."""

    def __init__(
        self,
        options: DetectionOptions | None = None,
        *,
        equation_converter: EquationConverter | None = None,
        image_extractor: ImageExtractor | None = None,
        start_order: int = 0,
    ) -> None:
        self.options = options or DetectionOptions()
        self._equation_converter = equation_converter
        self._image_extractor = image_extractor or _snapshot_drawings
        self._counter = itertools.count(start_order)
        self.warnings: list[str] = []

    def next_order(self) -> int:
        return next(self._counter)

    def formatting_for(
        self, analysis: ParagraphAnalysis
    ) -> tuple[FormattingSpan, ...]:
        """Formatting spans to carry onto an element (empty unless preserved)."""
        return analysis.formatting if self.options.preserve_formatting else ()

    # ── Paragraph-derived elements ──────────────────────────────────

    def create_paragraph(
        self, analysis: ParagraphAnalysis, *, style: str | None = None
    ) -> ParagraphElement | None:
        """Paragraph element for non-blank text; None for blank paragraphs."""
        if analysis.is_blank:
            return None
        return ParagraphElement(
            order=self.next_order(),
            text=analysis.text,
            formatting=self.formatting_for(analysis),
            style=style or paragraph_style_for(analysis.style_id),
            style_id=analysis.style_id,
        )

    def create_list_item(self, analysis: ParagraphAnalysis) -> ListItemElement | None:
        if analysis.is_blank:
            return None
        return ListItemElement(
            order=self.next_order(),
            text=analysis.text,
            formatting=self.formatting_for(analysis),
            level=analysis.numbering_level,
            is_numbered=analysis.is_numbered_list,
            marker=analysis.list_marker,
        )

    def create_page_break(self) -> PageBreakElement:
        return PageBreakElement(order=self.next_order())

    def create_equations(self, analysis: ParagraphAnalysis) -> list[EquationElement]:
        """One display equation per OMML node, converted when possible."""
        equations: list[EquationElement] = []
        for omml in analysis.math_nodes:
            order = self.next_order()
            if self._equation_converter is None:
                equations.append(EquationElement(order=order, omml=omml))
                continue
            latex, ok, error = self._equation_converter(omml)
            if not ok:
                message = f"Equation conversion failed at order {order}: {error}"
                log.warning(message)
                self.warnings.append(message)
            equations.append(
                EquationElement(
                    order=order,
                    omml=omml,
                    latex=latex,
                    conversion_succeeded=ok,
                    conversion_error=error,
                )
            )
        return equations

    def drawings_for(self, analysis: ParagraphAnalysis) -> list[DrawingRef]:
        """Pictures the extractor finds in *analysis*; no order is consumed."""
        return list(self._image_extractor(analysis))

    def create_images(self, refs: Iterable[DrawingRef]) -> list[ImageElement]:
        return [
            ImageElement(
                order=self.next_order(),
                data=ref.data,
                mime_type=ref.mime_type,
                filename=ref.filename,
                alt_text=ref.alt_text,
                width_emu=ref.width_emu,
                height_emu=ref.height_emu,
                relationship_id=ref.relationship_id,
            )
            for ref in refs
        ]

    def extract_images(self, analysis: ParagraphAnalysis) -> list[ImageElement]:
        """Image elements for every picture the extractor finds, in order."""
        return self.create_images(self.drawings_for(analysis))

    # ── Non-paragraph body elements ─────────────────────────────────

    def create_table(
        self,
        rows: Iterable[Iterable[TableCell | str]],
        *,
        has_header_row: bool = False,
    ) -> TableElement:
        """Table element; plain strings are wrapped into single-span cells."""
        built = tuple(
            tuple(c if isinstance(c, TableCell) else TableCell(text=c) for c in row)
            for row in rows
        )
        return TableElement(
            order=self.next_order(), rows=built, has_header_row=has_header_row
        )
