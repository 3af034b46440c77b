"""Tests for docimport.run_manifest utilities."""
from __future__ import annotations

from pathlib import Path

from docimport.analysis import ParagraphAnalysis
from docimport.config import DetectionOptions
from docimport.factory import ElementFactory
from docimport.pipeline import DetectionPipeline
from docimport.registry import build_default_rules
from docimport.run_manifest import (
    build_manifest,
    compare_manifests,
    element_counts,
    generate_run_id,
    load_manifest,
    write_manifest,
)


def _manifest(
    run_id: str,
    texts: list[str],
    *,
    options: DetectionOptions | None = None,
    errors_count: int = 0,
) -> dict[str, object]:
    options = options or DetectionOptions()
    pipeline = DetectionPipeline(build_default_rules(options))
    elements = pipeline.run(
        [ParagraphAnalysis(style_id="Heading1" if t.isupper() else None, text=t) for t in texts],
        ElementFactory(options),
    )
    return build_manifest(
        run_id=run_id,
        input_source={"mode": "test"},
        options=options,
        rules=pipeline.rules,
        traces=pipeline.traces,
        elements=elements,
        timings_sec={"total": 1.25},
        errors_count=errors_count,
        stats={"paragraphs": len(texts)},
        git_commit="deadbeef",
    )


def test_generate_run_id_prefix() -> None:
    run_id = generate_run_id("test_run")
    assert run_id.startswith("test_run_")
    assert generate_run_id() != generate_run_id()


def test_write_and_load_manifest(tmp_path: Path) -> None:
    manifest = _manifest("run_a", ["INTRODUCTION", "Body text.", ""])
    canonical_path, versioned_path = write_manifest(tmp_path, manifest)
    assert canonical_path.exists()
    assert versioned_path.name == "run_manifest_run_a.json"

    loaded = load_manifest(canonical_path)
    assert loaded["run_id"] == "run_a"
    assert loaded["trace_summary"] == {"heading": 1, "paragraph": 2}
    assert loaded["element_counts"] == {"heading": 1, "paragraph": 1}
    assert loaded["paragraph_count"] == 3
    assert loaded["git_commit"] == "deadbeef"
    assert len(loaded["rule_catalog"]) == 22
    assert len(loaded["options_fingerprint"]) == 64


def test_compare_manifests_deltas() -> None:
    older = _manifest("old", ["Body."], errors_count=2)
    newer = _manifest(
        "new",
        ["METHODS", "Body.", "More."],
        options=DetectionOptions(detect_code_by_font=False),
        errors_count=1,
    )
    delta = compare_manifests(newer, older)
    assert delta["current_run_id"] == "new"
    assert delta["previous_run_id"] == "old"
    assert delta["options_changed"] is True
    assert delta["rules_removed"] == ["code.font"]
    assert delta["rules_added"] == []
    assert delta["trace_summary_delta"] == {"heading": 1, "paragraph": 1}
    assert delta["errors_count_delta"] == -1


def test_compare_identical_options() -> None:
    a = _manifest("a", ["Body."])
    b = _manifest("b", ["Body."])
    delta = compare_manifests(a, b)
    assert delta["options_changed"] is False
    assert delta["element_count_delta"] == {"paragraph": 0}


def test_element_counts_sorted() -> None:
    factory = ElementFactory()
    elements = [factory.create_page_break(), factory.create_table([["a"]])]
    assert list(element_counts(elements)) == ["page_break", "table"]
