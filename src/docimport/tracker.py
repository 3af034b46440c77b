"""Section tracker: which document section we are in, and whether the
current position is inside an abstract.

Transitions happen only through rule callbacks:

* ``on_heading_encountered``: classify the heading; a known section
  replaces the current one; abstract sets the in-abstract flag, anything
  else (including unclassified headings) clears it.
* ``on_title_or_subtitle_encountered``: Title/Subtitle paragraphs that are
  abstract keywords open the abstract.
* ``begin_abstract_section`` / ``end_abstract_section``: flag only.

State persists until ``reset``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from docimport.keywords import classify_section, is_abstract_keyword
from docimport.models import SECTION_TYPES, SectionType

log = logging.getLogger(__name__)


@dataclass(slots=True)
class SectionTracker:
    current_section: SectionType = "unknown"
    in_abstract_section: bool = False

    def __post_init__(self) -> None:
        if self.current_section not in SECTION_TYPES:
            raise ValueError(f"unknown section type: {self.current_section!r}")

    def on_heading_encountered(self, text: str, level: int) -> None:
        section = classify_section(text)
        if section != "unknown":
            self.current_section = section
        self.in_abstract_section = section == "abstract"
        log.debug(
            "heading L%d %r -> section=%s in_abstract=%s",
            level, text[:80], self.current_section, self.in_abstract_section,
        )

    def on_title_or_subtitle_encountered(self, text: str) -> None:
        if is_abstract_keyword(text):
            self.current_section = "abstract"
            self.in_abstract_section = True

    def begin_abstract_section(self) -> None:
        self.in_abstract_section = True

    def end_abstract_section(self) -> None:
        self.in_abstract_section = False

    def reset(self) -> None:
        self.current_section = "unknown"
        self.in_abstract_section = False

    def snapshot(self) -> tuple[SectionType, bool]:
        return self.current_section, self.in_abstract_section
