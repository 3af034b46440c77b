"""Detection options and their JSON persistence.

``DetectionOptions`` gates which default rules are registered and supplies
the style-pattern and font sets they match against. Options files are plain
JSON objects whose keys are field names; omitted keys keep their defaults.
"""
from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import orjson

from docimport.keywords import MONOSPACE_FONTS

_MAX_HEADING_LEVEL = 9


class OptionsError(ValueError):
    """Raised for unknown keys or invalid values in detection options."""


@dataclass(frozen=True, slots=True)
class DetectionOptions:
    # Rule toggles
    detect_code_by_style: bool = True
    detect_code_by_font: bool = True
    detect_code_by_shading: bool = True
    detect_headings_by_formatting: bool = True
    detect_theorem_environments: bool = True
    detect_blockquotes_by_style: bool = True
    detect_blockquotes_by_indent: bool = True
    detect_abstract_by_style: bool = True
    detect_bibliography_entries: bool = True
    extract_images: bool = True
    preserve_formatting: bool = True

    # Heading levels eligible to start a section
    min_heading_level: int = 1
    max_heading_level: int = 6

    # Match sets
    monospace_fonts: frozenset[str] = MONOSPACE_FONTS
    code_style_patterns: frozenset[str] = frozenset({
        "Code", "Preformatted", "SourceCode", "Listing", "Verbatim", "Monospace",
    })
    abstract_style_patterns: frozenset[str] = frozenset({"Abstract"})
    theorem_style_patterns: frozenset[str] = frozenset({
        "Theorem", "Lemma", "Proposition", "Corollary", "Definition",
        "Proof", "Remark", "Example", "Conjecture", "Axiom",
    })
    blockquote_style_patterns: frozenset[str] = frozenset({
        "Quote", "BlockQuote", "IntenseQuote",
    })

    disabled_rule_ids: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (set, list, tuple)):
                object.__setattr__(self, f.name, frozenset(value))
        validate_options(self)

    def with_overrides(self, **overrides: Any) -> DetectionOptions:
        return options_from_dict({**options_to_dict(self), **overrides})


_SET_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(DetectionOptions) if f.type == "frozenset[str]"
)
_BOOL_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(DetectionOptions) if f.type == "bool"
)
_INT_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(DetectionOptions) if f.type == "int"
)


def validate_options(options: DetectionOptions) -> None:
    """Raise OptionsError unless 1 <= min_heading_level <= max_heading_level <= 9."""
    lo, hi = options.min_heading_level, options.max_heading_level
    if not 1 <= lo <= _MAX_HEADING_LEVEL:
        raise OptionsError(f"min_heading_level must be in 1..9, got {lo}")
    if not 1 <= hi <= _MAX_HEADING_LEVEL:
        raise OptionsError(f"max_heading_level must be in 1..9, got {hi}")
    if lo > hi:
        raise OptionsError(
            f"min_heading_level ({lo}) must not exceed max_heading_level ({hi})"
        )


def options_from_dict(payload: dict[str, Any]) -> DetectionOptions:
    """Build options from a JSON-style dict, rejecting unknown keys."""
    known = {f.name for f in fields(DetectionOptions)}
    unknown = sorted(k for k in payload if k not in known)
    if unknown:
        raise OptionsError(f"Unknown detection option(s): {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for key, value in payload.items():
        if key in _SET_FIELDS:
            if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
                raise OptionsError(f"{key} must be a list of strings")
            if not all(isinstance(v, str) for v in value):
                raise OptionsError(f"{key} must contain only strings")
            kwargs[key] = frozenset(value)
        elif key in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise OptionsError(f"{key} must be a boolean, got {value!r}")
            kwargs[key] = value
        elif key in _INT_FIELDS:
            if isinstance(value, bool) or not isinstance(value, int):
                raise OptionsError(f"{key} must be an integer, got {value!r}")
            kwargs[key] = value
    return DetectionOptions(**kwargs)


def options_to_dict(options: DetectionOptions) -> dict[str, Any]:
    """JSON-compatible dict; sets become sorted lists."""
    out: dict[str, Any] = {}
    for key, value in asdict(options).items():
        out[key] = sorted(value) if isinstance(value, frozenset) else value
    return out


def load_options(path: Path) -> DetectionOptions:
    """Load options from a JSON object file."""
    try:
        payload = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as exc:
        raise OptionsError(f"Options file is not valid JSON: {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise OptionsError(f"Options payload must be a JSON object: {path}")
    return options_from_dict(payload)


def options_fingerprint(options: DetectionOptions) -> str:
    """Stable sha256 of the options, for run manifests."""
    raw = orjson.dumps(options_to_dict(options), option=orjson.OPT_SORT_KEYS)
    return hashlib.sha256(raw).hexdigest()


def disable_rules(options: DetectionOptions, *rule_ids: str) -> DetectionOptions:
    """Copy of *options* with *rule_ids* added to the disabled set."""
    return replace(
        options, disabled_rule_ids=options.disabled_rule_ids | frozenset(rule_ids)
    )
