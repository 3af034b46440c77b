"""Condition AST for detection rules.

Leaf nodes test one aspect of a ``ParagraphAnalysis``; two compound nodes
combine them:

* **Composite**: AND/OR of children (short-circuiting).
* **Not**: negation of one child.

Leaves: StyleMatch, FontMatch, Shading, Formatting, ContentPattern,
Numbering, FormatElements, SectionContext, Indent, HeadingText, StyleSet,
Always, plus **Predicate** for one-off checks that do not fit a leaf.

Functions:

* ``evaluate(condition, analysis)``: single exhaustive match, never raises
  for a well-formed snapshot.
* ``describe(condition)``: human-readable rendering for rule catalogs.
* ``all_of`` / ``any_of`` / ``negate``: combinator shorthands.

Regex patterns are validated when the node is built, so a bad pattern fails
at rule-registration time instead of during a document run.
"""
from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

from docimport.analysis import ParagraphAnalysis
from docimport.models import SECTION_TYPES

# ---------------------------------------------------------------------------
# Leaf node types
# ---------------------------------------------------------------------------

_STYLE_MODES = frozenset({"exact", "contains", "starts_with", "regex"})
_CONTENT_MODES = frozenset({"full", "contains", "starts_with"})


@dataclass(frozen=True, slots=True)
class StyleMatch:
    """Leaf: compare the paragraph style id against *pattern*."""

    pattern: str
    mode: str = "contains"  # "exact" | "contains" | "starts_with" | "regex"
    ignore_case: bool = True

    def __post_init__(self) -> None:
        if self.mode not in _STYLE_MODES:
            raise ValueError(f"invalid style match mode: {self.mode!r}")
        if self.mode == "regex":
            _compile(self.pattern, _flags(self.ignore_case))


@dataclass(frozen=True, slots=True)
class FontMatch:
    """Leaf: font family is one of *fonts* (case-insensitive)."""

    fonts: frozenset[str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "fonts", frozenset(self.fonts))


@dataclass(frozen=True, slots=True)
class Shading:
    """Leaf: gray shading fill strictly inside (min_brightness, max_brightness)."""

    min_brightness: int = 180
    max_brightness: int = 250


@dataclass(frozen=True, slots=True)
class Formatting:
    """Leaf: every specified run-formatting constraint holds."""

    bold: bool | None = None
    italic: bool | None = None
    min_font_size: float | None = None
    max_font_size: float | None = None
    all_caps: bool | None = None


@dataclass(frozen=True, slots=True)
class ContentPattern:
    """Leaf: regex match against the paragraph text."""

    pattern: str
    mode: str = "contains"  # "full" | "contains" | "starts_with"
    ignore_case: bool = True

    def __post_init__(self) -> None:
        if self.mode not in _CONTENT_MODES:
            raise ValueError(f"invalid content match mode: {self.mode!r}")
        _compile(self.pattern, _flags(self.ignore_case))


@dataclass(frozen=True, slots=True)
class Numbering:
    has_numbering: bool | None = None
    is_numbered: bool | None = None


@dataclass(frozen=True, slots=True)
class FormatElements:
    """Leaf: presence of embedded math, drawings or page breaks."""

    has_math: bool | None = None
    has_drawings: bool | None = None
    has_page_breaks: bool | None = None


@dataclass(frozen=True, slots=True)
class SectionContext:
    """Leaf: section context injected from the tracker.

    ``allowed`` and ``disallowed`` are independent; either may be None.
    """

    allowed: frozenset[str] | None = None
    disallowed: frozenset[str] | None = None
    in_abstract: bool | None = None

    def __post_init__(self) -> None:
        for name in ("allowed", "disallowed"):
            value = getattr(self, name)
            if value is None:
                continue
            value = frozenset(value)
            unknown = sorted(value - SECTION_TYPES)
            if unknown:
                raise ValueError(f"unknown section type(s) in {name}: {unknown}")
            object.__setattr__(self, name, value)


@dataclass(frozen=True, slots=True)
class Indent:
    min_indent_twips: int | None = None
    has_left_border: bool | None = None


@dataclass(frozen=True, slots=True)
class HeadingText:
    """Leaf: trimmed text equals one of *keywords* (case-insensitive)."""

    keywords: frozenset[str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "keywords", frozenset(self.keywords))


@dataclass(frozen=True, slots=True)
class StyleSet:
    """Leaf: style id contains any of *patterns* (case-insensitive)."""

    patterns: frozenset[str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "patterns", frozenset(self.patterns))


@dataclass(frozen=True, slots=True)
class Always:
    """Leaf: always true. Used by the fallback rule."""


@dataclass(frozen=True, slots=True)
class Predicate:
    """Leaf: arbitrary check on the snapshot. *func* must not raise."""

    func: Callable[[ParagraphAnalysis], bool]
    description: str


# ---------------------------------------------------------------------------
# Compound node types
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Composite:
    """Compound: AND/OR of children."""

    mode: str  # "and" | "or"
    children: tuple[DetectionCondition, ...]

    def __post_init__(self) -> None:
        if self.mode not in ("and", "or"):
            raise ValueError(f"invalid composite mode: {self.mode!r}")


@dataclass(frozen=True, slots=True)
class Not:
    child: DetectionCondition


type DetectionCondition = (
    StyleMatch
    | FontMatch
    | Shading
    | Formatting
    | ContentPattern
    | Numbering
    | FormatElements
    | SectionContext
    | Indent
    | HeadingText
    | StyleSet
    | Always
    | Predicate
    | Composite
    | Not
)


def all_of(*children: DetectionCondition) -> Composite:
    return Composite("and", children)


def any_of(*children: DetectionCondition) -> Composite:
    return Composite("or", children)


def negate(child: DetectionCondition) -> Not:
    return Not(child)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _flags(ignore_case: bool) -> int:
    return re.IGNORECASE if ignore_case else 0


@lru_cache(maxsize=256)
def _compile(pattern: str, flags: int) -> re.Pattern[str]:
    return re.compile(pattern, flags)


@lru_cache(maxsize=64)
def _folded(values: frozenset[str]) -> frozenset[str]:
    return frozenset(v.casefold() for v in values)


def parse_gray_fill(fill: str | None) -> tuple[int, int, int] | None:
    """Parse a 6-digit hex fill into (r, g, b); None for anything else."""
    if not fill or len(fill) != 6:
        return None
    if not all(c in "0123456789abcdefABCDEF" for c in fill):
        return None
    return int(fill[0:2], 16), int(fill[2:4], 16), int(fill[4:6], 16)


def _shading_matches(cond: Shading, fill: str | None) -> bool:
    rgb = parse_gray_fill(fill)
    if rgb is None:
        return False
    r, g, b = rgb
    # White and near-white fills are page background, not code shading.
    if r >= 250 and g >= 250 and b >= 250:
        return False
    is_gray = abs(r - g) < 20 and abs(g - b) < 20 and abs(r - b) < 20
    lo, hi = cond.min_brightness, cond.max_brightness
    in_range = all(lo < c < hi for c in rgb)
    return is_gray and in_range


def _style_matches(cond: StyleMatch, style_id: str | None) -> bool:
    if not style_id:
        return False
    if cond.mode == "regex":
        return _compile(cond.pattern, _flags(cond.ignore_case)).search(style_id) is not None
    value, pattern = style_id, cond.pattern
    if cond.ignore_case:
        value, pattern = value.casefold(), pattern.casefold()
    if cond.mode == "exact":
        return value == pattern
    if cond.mode == "starts_with":
        return value.startswith(pattern)
    return pattern in value


def _content_matches(cond: ContentPattern, text: str) -> bool:
    if not text:
        return False
    rx = _compile(cond.pattern, _flags(cond.ignore_case))
    if cond.mode == "full":
        return rx.fullmatch(text) is not None
    if cond.mode == "starts_with":
        return rx.match(text) is not None
    return rx.search(text) is not None


def _formatting_matches(cond: Formatting, a: ParagraphAnalysis) -> bool:
    if cond.bold is not None and a.all_bold != cond.bold:
        return False
    if cond.italic is not None and a.all_italic != cond.italic:
        return False
    if cond.all_caps is not None and a.all_caps != cond.all_caps:
        return False
    if cond.min_font_size is not None and (
        a.font_size_pt is None or a.font_size_pt < cond.min_font_size
    ):
        return False
    if (
        cond.max_font_size is not None
        and a.font_size_pt is not None
        and a.font_size_pt > cond.max_font_size
    ):
        return False
    return True


def _section_matches(cond: SectionContext, a: ParagraphAnalysis) -> bool:
    if cond.allowed is not None and a.current_section not in cond.allowed:
        return False
    if cond.disallowed is not None and a.current_section in cond.disallowed:
        return False
    if cond.in_abstract is not None and a.in_abstract_section != cond.in_abstract:
        return False
    return True


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def evaluate(condition: DetectionCondition, analysis: ParagraphAnalysis) -> bool:
    """Evaluate *condition* against *analysis*. Pure and side-effect free."""
    match condition:
        case StyleMatch():
            return _style_matches(condition, analysis.style_id)
        case FontMatch(fonts=fonts):
            family = analysis.font_family
            return bool(family) and family.casefold() in _folded(fonts)
        case Shading():
            return _shading_matches(condition, analysis.shading_fill)
        case Formatting():
            return _formatting_matches(condition, analysis)
        case ContentPattern():
            return _content_matches(condition, analysis.text)
        case Numbering(has_numbering=has_num, is_numbered=is_num):
            if has_num is not None and analysis.has_numbering != has_num:
                return False
            if is_num is not None and analysis.is_numbered_list != is_num:
                return False
            return True
        case FormatElements(has_math=math, has_drawings=draw, has_page_breaks=pb):
            if math is not None and analysis.has_math != math:
                return False
            if draw is not None and analysis.has_drawings != draw:
                return False
            if pb is not None and analysis.has_page_breaks != pb:
                return False
            return True
        case SectionContext():
            return _section_matches(condition, analysis)
        case Indent(min_indent_twips=min_indent, has_left_border=border):
            if min_indent is not None and analysis.indent_left_twips < min_indent:
                return False
            if border is not None and analysis.has_left_border != border:
                return False
            return True
        case HeadingText(keywords=keywords):
            if analysis.is_blank:
                return False
            return analysis.text.strip().casefold() in _folded(keywords)
        case StyleSet(patterns=patterns):
            if not analysis.style_id:
                return False
            style = analysis.style_id.casefold()
            return any(p.casefold() in style for p in patterns)
        case Always():
            return True
        case Predicate(func=func):
            return bool(func(analysis))
        case Composite(mode="and", children=children):
            return all(evaluate(c, analysis) for c in children)
        case Composite(children=children):
            return any(evaluate(c, analysis) for c in children)
        case Not(child=child):
            return not evaluate(child, analysis)
    raise TypeError(f"unknown condition node: {type(condition).__name__}")


# ---------------------------------------------------------------------------
# Description
# ---------------------------------------------------------------------------

def _preview(values: frozenset[str], limit: int = 3) -> str:
    items = sorted(values)
    head = ", ".join(items[:limit])
    return f"{head}..." if len(items) > limit else head


def _opt(label: str, value: object) -> str | None:
    return None if value is None else f"{label}={value}"


def describe(condition: DetectionCondition) -> str:
    """Render *condition* as a short human-readable string."""
    match condition:
        case StyleMatch(pattern=pattern, mode=mode):
            return f"StyleId {mode} '{pattern}'"
        case FontMatch(fonts=fonts):
            return f"FontFamily in [{_preview(fonts)}]"
        case Shading(min_brightness=lo, max_brightness=hi):
            return f"ShadingFill gray in [{lo}-{hi}]"
        case Formatting(bold=b, italic=i, min_font_size=mn, max_font_size=mx, all_caps=caps):
            parts = [
                p for p in (
                    _opt("Bold", b), _opt("Italic", i), _opt("FontSize>", mn),
                    _opt("FontSize<", mx), _opt("AllCaps", caps),
                ) if p
            ]
            return f"Formatting({', '.join(parts)})"
        case ContentPattern(pattern=pattern, mode=mode):
            return f"Text {mode} '{pattern}'"
        case Numbering(has_numbering=has_num, is_numbered=is_num):
            return f"Numbering(has={has_num}, numbered={is_num})"
        case FormatElements(has_math=math, has_drawings=draw, has_page_breaks=pb):
            return f"FormatElements(math={math}, drawings={draw}, page_breaks={pb})"
        case SectionContext(allowed=allowed, disallowed=disallowed, in_abstract=ab):
            parts = [
                p for p in (
                    _opt("allowed", sorted(allowed) if allowed is not None else None),
                    _opt("disallowed", sorted(disallowed) if disallowed is not None else None),
                    _opt("in_abstract", ab),
                ) if p
            ]
            return f"SectionContext({', '.join(parts)})"
        case Indent(min_indent_twips=min_indent, has_left_border=border):
            return f"Indent(min={min_indent}, border={border})"
        case HeadingText(keywords=keywords):
            return f"HeadingText in [{_preview(keywords)}]"
        case StyleSet(patterns=patterns):
            return f"StyleId contains any of [{_preview(patterns)}]"
        case Always():
            return "Always"
        case Predicate(description=description):
            return description
        case Composite(mode=mode, children=children):
            inner = ", ".join(describe(c) for c in children)
            return f"{mode.upper()}({inner})"
        case Not(child=child):
            return f"NOT({describe(child)})"
    raise TypeError(f"unknown condition node: {type(condition).__name__}")
