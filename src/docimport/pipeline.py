"""Detection pipeline: runs the prioritized rule list over paragraphs.

Per paragraph:

1. Inject the tracker's section state into the snapshot (``with_context``).
2. Walk enabled rules in priority order; the first rule whose condition
   holds builds elements.
3. ``None`` from a builder is fallthrough; a list (even empty) is final.
   The rule's ``on_match`` callback then runs against the tracker.
4. Exactly one ``TraceEntry`` is appended, matched or dropped.

Failures inside a rule are isolated: the exception is logged, recorded on
the trace entry, and the rule is skipped. ``raise_on_rule_error=True``
turns that into ``RuleEvaluationError``.

One pipeline (and tracker) per document; rules themselves are immutable
and can be shared across pipelines.
"""
from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence

from docimport.analysis import ParagraphAnalysis
from docimport.conditions import evaluate
from docimport.factory import ElementFactory
from docimport.models import (
    DROPPED,
    ImportElement,
    TraceEntry,
    truncate_raw_text,
)
from docimport.rules import DetectionRule
from docimport.tracker import SectionTracker

log = logging.getLogger(__name__)

NO_MATCH_RULE_ID = "none"
NON_PARAGRAPH_RULE_ID = "n/a"

_DROPPED_NOTE = "No detection rule matched this paragraph"
_CONSUMED_NOTE = "Consumed without output (e.g., abstract heading marker)"


class RuleEvaluationError(RuntimeError):
    """A rule's condition, builder or callback raised."""

    def __init__(self, rule_id: str, body_index: int, stage: str, cause: BaseException) -> None:
        super().__init__(
            f"rule {rule_id!r} failed during {stage} at body index {body_index}: {cause}"
        )
        self.rule_id = rule_id
        self.body_index = body_index
        self.stage = stage


def merge_rules(
    default_rules: Iterable[DetectionRule],
    custom_rules: Iterable[DetectionRule] | None = None,
    disabled_rule_ids: Iterable[str] | None = None,
) -> list[DetectionRule]:
    """Enabled rules sorted by priority; equal priorities keep registration order."""
    disabled = frozenset(disabled_rule_ids or ())
    merged = [*default_rules, *(custom_rules or ())]
    active = [r for r in merged if r.enabled and r.id not in disabled]
    # list.sort is stable: defaults stay ahead of customs on ties.
    active.sort(key=lambda r: r.priority)
    return active


class DetectionPipeline:
    """Evaluates paragraphs against rules and records a detection trace."""

    def __init__(
        self,
        default_rules: Iterable[DetectionRule],
        custom_rules: Iterable[DetectionRule] | None = None,
        disabled_rule_ids: Iterable[str] | None = None,
        tracker: SectionTracker | None = None,
        *,
        raise_on_rule_error: bool = False,
    ) -> None:
        self._rules = tuple(merge_rules(default_rules, custom_rules, disabled_rule_ids))
        self._tracker = tracker if tracker is not None else SectionTracker()
        self._traces: list[TraceEntry] = []
        self._body_index = 0
        self._raise = raise_on_rule_error
        log.debug("pipeline ready with %d rules: %s", len(self._rules),
                  ", ".join(r.id for r in self._rules))

    @property
    def rules(self) -> tuple[DetectionRule, ...]:
        return self._rules

    @property
    def tracker(self) -> SectionTracker:
        return self._tracker

    @property
    def traces(self) -> tuple[TraceEntry, ...]:
        return tuple(self._traces)

    # ── Evaluation ──────────────────────────────────────────────────

    def evaluate(
        self, analysis: ParagraphAnalysis, factory: ElementFactory
    ) -> list[ImportElement] | None:
        """Run rules on one paragraph. ``None`` means no rule produced output."""
        body_index = self._body_index
        self._body_index += 1

        section, in_abstract = self._tracker.snapshot()
        snapshot = analysis.with_context(section, in_abstract)
        errors: list[str] = []

        for rule in self._rules:
            try:
                matched = evaluate(rule.condition, snapshot)
            except Exception as exc:
                self._record(rule, body_index, "condition", exc, errors)
                continue
            if not matched:
                continue

            failed = False
            result: list[ImportElement] | None = None
            try:
                result = rule.build(snapshot, factory)
            except Exception as exc:
                self._record(rule, body_index, "build", exc, errors)
                failed = True
            if failed or result is None:
                log.debug("rule %s matched body %d but was not applicable", rule.id, body_index)
                continue

            if rule.on_match is not None:
                try:
                    rule.on_match(snapshot, self._tracker)
                except Exception as exc:
                    self._record(rule, body_index, "callback", exc, errors)

            log.debug("body %d -> %s (%d elements)", body_index, rule.id, len(result))
            self._traces.append(
                self._paragraph_trace(
                    body_index, snapshot, rule, result,
                    notes=None if result else _CONSUMED_NOTE,
                    errors=errors,
                )
            )
            return result

        self._traces.append(
            self._paragraph_trace(body_index, snapshot, None, [], notes=_DROPPED_NOTE, errors=errors)
        )
        return None

    def run(
        self, analyses: Iterable[ParagraphAnalysis], factory: ElementFactory
    ) -> list[ImportElement]:
        """Evaluate a whole document in order and flatten the output."""
        elements: list[ImportElement] = []
        for analysis in analyses:
            produced = self.evaluate(analysis, factory)
            if produced:
                elements.extend(produced)
        return elements

    def add_non_paragraph_trace(
        self,
        element_type: str,
        text: str,
        elements_produced: int,
        detected_type: str,
    ) -> None:
        """Trace a body element (table, ...) that bypasses the rule engine."""
        body_index = self._body_index
        self._body_index += 1
        section, in_abstract = self._tracker.snapshot()
        self._traces.append(
            TraceEntry(
                body_index=body_index,
                element_type=element_type,
                raw_text=truncate_raw_text(text),
                full_text=text,
                matched_rule_id=NON_PARAGRAPH_RULE_ID,
                detected_type=detected_type,
                elements_produced=elements_produced,
                current_section=section,
                in_abstract_section=in_abstract,
            )
        )

    def summary(self) -> dict[str, int]:
        """Trace counts by detected type, sorted by type name."""
        counts = Counter(t.detected_type for t in self._traces)
        return dict(sorted(counts.items()))

    # ── Internals ───────────────────────────────────────────────────

    def _record(
        self,
        rule: DetectionRule,
        body_index: int,
        stage: str,
        exc: Exception,
        errors: list[str],
    ) -> None:
        if self._raise:
            raise RuleEvaluationError(rule.id, body_index, stage, exc) from exc
        log.warning("rule %s %s failed at body %d: %s", rule.id, stage, body_index, exc)
        errors.append(f"{rule.id}: {stage}: {type(exc).__name__}: {exc}")

    def _paragraph_trace(
        self,
        body_index: int,
        a: ParagraphAnalysis,
        rule: DetectionRule | None,
        produced: Sequence[ImportElement],
        *,
        notes: str | None,
        errors: list[str],
    ) -> TraceEntry:
        return TraceEntry(
            body_index=body_index,
            element_type="paragraph",
            raw_text=truncate_raw_text(a.text),
            full_text=a.text,
            matched_rule_id=rule.id if rule else NO_MATCH_RULE_ID,
            matched_rule_name=rule.name if rule else None,
            detected_type=rule.target if rule else DROPPED,
            elements_produced=len(produced),
            current_section=a.current_section,
            in_abstract_section=a.in_abstract_section,
            style_id=a.style_id,
            font_family=a.font_family,
            font_size_pt=a.font_size_pt,
            all_bold=a.all_bold,
            all_italic=a.all_italic,
            has_numbering=a.has_numbering,
            has_math=a.has_math,
            has_drawings=a.has_drawings,
            has_page_breaks=a.has_page_breaks,
            shading_fill=a.shading_fill,
            outline_level=a.outline_level,
            indent_left_twips=a.indent_left_twips,
            has_left_border=a.has_left_border,
            notes=notes,
            rule_errors=tuple(errors),
        )
