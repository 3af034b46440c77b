#!/usr/bin/env python3
"""Run element detection over a document's paragraph snapshots.

Input is JSONL, one body element per line in document order. Paragraph
lines are ``ParagraphAnalysis`` objects (see ``docimport.analysis``); a line
with ``"body_type": "table"`` carries ``rows`` (list of lists of cell text)
and an optional ``has_header_row`` and bypasses the rule engine.

Outputs, written into ``--output-dir``:
    - ``elements.jsonl``     : detected elements, in order
    - ``traces.jsonl``       : one trace entry per body element
    - ``run_manifest.json``  : options fingerprint, rule catalog, counts
      (plus a run-id-versioned copy)

A JSON summary is printed to stdout.

Usage:
    python3 scripts/detect_elements.py \\
        --input paper.paragraphs.jsonl \\
        --output-dir out/paper \\
        --options detection_options.json \\
        --disable code.shading -v

    python3 scripts/detect_elements.py --list-rules
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Any

import orjson

from docimport.analysis import ParagraphAnalysis
from docimport.config import DetectionOptions, OptionsError, disable_rules, load_options
from docimport.factory import ElementFactory
from docimport.io_utils import JsonlError, load_jsonl, save_jsonl
from docimport.models import ImportElement, element_to_dict
from docimport.pipeline import DetectionPipeline
from docimport.registry import build_default_rules
from docimport.run_manifest import (
    build_manifest,
    generate_run_id,
    git_commit_hash,
    write_manifest,
)

log = logging.getLogger("detect_elements")


def dump_json(obj: Any) -> None:
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect document elements (headings, lists, code, ...) in paragraph snapshots.",
    )
    parser.add_argument("--input", type=Path, help="Paragraph snapshots JSONL.")
    parser.add_argument("--options", type=Path, default=None, help="Detection options JSON.")
    parser.add_argument("--output-dir", type=Path, default=None, help="Directory for outputs.")
    parser.add_argument(
        "--disable",
        action="append",
        default=[],
        metavar="RULE_ID",
        help="Disable a rule by id (repeatable).",
    )
    parser.add_argument(
        "--list-rules",
        action="store_true",
        help="Print the active rule catalog and exit.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def _table_rows(record: dict[str, Any]) -> list[list[str]]:
    rows = record.get("rows") or []
    if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
        raise ValueError("table rows must be a list of lists")
    return [[str(c) for c in row] for row in rows]


def detect_document(
    records: list[dict[str, Any]],
    options: DetectionOptions,
) -> tuple[DetectionPipeline, ElementFactory, list[ImportElement]]:
    """Run the default rules over *records* in order."""
    pipeline = DetectionPipeline(
        build_default_rules(options),
        disabled_rule_ids=options.disabled_rule_ids,
    )
    factory = ElementFactory(options)
    elements: list[ImportElement] = []

    for record in records:
        if record.get("body_type") == "table":
            rows = _table_rows(record)
            table = factory.create_table(
                rows, has_header_row=bool(record.get("has_header_row", False))
            )
            elements.append(table)
            text = "\n".join(" | ".join(row) for row in rows)
            pipeline.add_non_paragraph_trace("table", text, 1, "table")
            continue
        produced = pipeline.evaluate(ParagraphAnalysis.from_dict(record), factory)
        if produced:
            elements.extend(produced)

    return pipeline, factory, elements


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        options = load_options(args.options) if args.options else DetectionOptions()
    except (OSError, OptionsError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if args.disable:
        options = disable_rules(options, *args.disable)

    if args.list_rules:
        disabled = options.disabled_rule_ids
        catalog = [
            {**r.to_catalog_entry(), "enabled": r.enabled and r.id not in disabled}
            for r in sorted(build_default_rules(options), key=lambda r: r.priority)
        ]
        dump_json(catalog)
        return 0

    if args.input is None or args.output_dir is None:
        parser.print_usage(sys.stderr)
        print("Error: --input and --output-dir are required", file=sys.stderr)
        return 1
    if not args.input.exists():
        print(f"Error: input not found: {args.input}", file=sys.stderr)
        return 1

    t0 = time.perf_counter()
    try:
        records = load_jsonl(args.input)
    except JsonlError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    t_load = time.perf_counter() - t0

    try:
        pipeline, factory, elements = detect_document(records, options)
    except (KeyError, TypeError, ValueError) as exc:
        print(f"Error: malformed input record: {exc}", file=sys.stderr)
        return 1
    t_detect = time.perf_counter() - t0 - t_load

    traces = pipeline.traces
    errors_count = sum(len(t.rule_errors) for t in traces)
    run_id = generate_run_id()

    out_dir: Path = args.output_dir
    save_jsonl((element_to_dict(e) for e in elements), out_dir / "elements.jsonl")
    save_jsonl((t.to_dict() for t in traces), out_dir / "traces.jsonl")

    manifest = build_manifest(
        run_id=run_id,
        input_source={"path": str(args.input), "records": len(records)},
        options=options,
        rules=pipeline.rules,
        traces=traces,
        elements=elements,
        timings_sec={"load": round(t_load, 4), "detect": round(t_detect, 4)},
        errors_count=errors_count,
        stats={"warnings": len(factory.warnings)},
        git_commit=git_commit_hash(search_from=Path(__file__)),
        notes={"warnings": factory.warnings} if factory.warnings else None,
    )
    canonical, _ = write_manifest(out_dir, manifest)
    log.info("%d body elements -> %d elements (%d rule errors)",
             len(traces), len(elements), errors_count)

    dump_json({
        "run_id": run_id,
        "input": str(args.input),
        "body_elements": len(traces),
        "elements": len(elements),
        "trace_summary": pipeline.summary(),
        "errors_count": errors_count,
        "manifest": str(canonical),
    })
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
