"""Detection rule: a prioritized (condition -> element builder) mapping.

Priority bands (lower is evaluated first):

    0-99     page breaks
    100-199  headings (105/106: Title/Subtitle reclassification)
    300-399  lists
    400-499  equations
    500-599  section-context types (abstract, bibliography)
    600-699  semantic types (theorem, blockquote)
    700-799  code blocks
    800-899  images
    900-999  fallback paragraph

A builder returns ``None`` for "not applicable" (the pipeline falls through
to the next rule) or a list, possibly empty, as the final answer for the
paragraph. The optional ``on_match`` callback is the only place rules may
touch the section tracker.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from docimport.analysis import ParagraphAnalysis
from docimport.conditions import DetectionCondition, describe
from docimport.models import ELEMENT_KINDS, ImportElement

if TYPE_CHECKING:
    from docimport.factory import ElementFactory
    from docimport.tracker import SectionTracker

type ElementBuilder = Callable[
    [ParagraphAnalysis, "ElementFactory"], list[ImportElement] | None
]
type MatchCallback = Callable[[ParagraphAnalysis, "SectionTracker"], None]


@dataclass(frozen=True, slots=True)
class DetectionRule:
    """One detection rule. Immutable; use ``with_enabled`` to toggle."""

    id: str           # "heading.style", "code.font", ...
    name: str
    priority: int
    target: str       # one of ELEMENT_KINDS
    condition: DetectionCondition
    build: ElementBuilder
    on_match: MatchCallback | None = None
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("rule id must be non-empty")
        if self.target not in ELEMENT_KINDS:
            raise ValueError(f"unknown target element kind: {self.target!r}")

    def with_enabled(self, enabled: bool) -> DetectionRule:
        return replace(self, enabled=enabled)

    @property
    def description(self) -> str:
        return describe(self.condition)

    def to_catalog_entry(self) -> dict[str, object]:
        """Summary row used by rule listings and run manifests."""
        return {
            "id": self.id,
            "name": self.name,
            "priority": self.priority,
            "target": self.target,
            "enabled": self.enabled,
            "condition": self.description,
            "has_callback": self.on_match is not None,
        }
