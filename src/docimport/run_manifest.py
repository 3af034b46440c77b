"""Run-manifest utilities for detection-run reproducibility and comparison."""
from __future__ import annotations

import subprocess
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from docimport.config import DetectionOptions, options_fingerprint, options_to_dict
from docimport.io_utils import load_json, save_json
from docimport.models import ImportElement, TraceEntry
from docimport.rules import DetectionRule

MANIFEST_VERSION = "1.0"
MANIFEST_FILENAME = "run_manifest.json"


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format."""
    return datetime.now(UTC).isoformat()


def generate_run_id(prefix: str = "detection_run") -> str:
    """Generate a compact run id suitable for artifact naming."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}_{ts}_{uuid4().hex[:8]}"


def versioned_manifest_path(output_dir: Path, run_id: str) -> Path:
    return output_dir / f"run_manifest_{run_id}.json"


def git_commit_hash(*, search_from: Path | None = None) -> str | None:
    """Best-effort current git commit hash for reproducibility metadata."""
    cwd = (search_from or Path.cwd())
    if cwd.is_file():
        cwd = cwd.parent
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return None
    if proc.returncode != 0:
        return None
    out = proc.stdout.strip()
    return out if out else None


def trace_summary(traces: Iterable[TraceEntry]) -> dict[str, int]:
    """Trace counts by detected type, sorted by type name."""
    return dict(sorted(Counter(t.detected_type for t in traces).items()))


def element_counts(elements: Iterable[ImportElement]) -> dict[str, int]:
    """Element counts by kind, sorted by kind name."""
    return dict(sorted(Counter(e.kind for e in elements).items()))


def build_manifest(
    *,
    run_id: str,
    input_source: dict[str, Any],
    options: DetectionOptions,
    rules: Sequence[DetectionRule],
    traces: Sequence[TraceEntry],
    elements: Sequence[ImportElement],
    timings_sec: dict[str, float],
    errors_count: int,
    stats: dict[str, Any] | None = None,
    git_commit: str | None = None,
    notes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the manifest payload for one detection run."""
    return {
        "manifest_version": MANIFEST_VERSION,
        "created_at": utc_now_iso(),
        "run_id": run_id,
        "git_commit": git_commit,
        "input_source": input_source,
        "options": options_to_dict(options),
        "options_fingerprint": options_fingerprint(options),
        "rule_catalog": [r.to_catalog_entry() for r in rules],
        "trace_summary": trace_summary(traces),
        "element_counts": element_counts(elements),
        "paragraph_count": sum(1 for t in traces if t.element_type == "paragraph"),
        "timings_sec": timings_sec,
        "errors_count": int(errors_count),
        "stats": stats or {},
        "notes": notes or {},
    }


def write_manifest(
    output_dir: Path,
    manifest: dict[str, Any],
) -> tuple[Path, Path]:
    """Write canonical + versioned manifest files into *output_dir*."""
    canonical = output_dir / MANIFEST_FILENAME
    versioned = versioned_manifest_path(output_dir, str(manifest["run_id"]))
    save_json(manifest, canonical, pretty=True)
    save_json(manifest, versioned, pretty=True)
    return canonical, versioned


def load_manifest(path: Path) -> dict[str, Any]:
    """Load a manifest from JSON."""
    data = load_json(path)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid manifest payload in {path}")
    return data


def _count_delta(current: Any, previous: Any) -> dict[str, int]:
    curr = current if isinstance(current, dict) else {}
    prev = previous if isinstance(previous, dict) else {}
    keys = sorted(set(curr) | set(prev))
    return {k: int(curr.get(k, 0) or 0) - int(prev.get(k, 0) or 0) for k in keys}


def compare_manifests(
    current: dict[str, Any],
    previous: dict[str, Any],
) -> dict[str, Any]:
    """Compare two manifest payloads and produce deterministic deltas."""
    curr_errors = int(current.get("errors_count", 0) or 0)
    prev_errors = int(previous.get("errors_count", 0) or 0)

    curr_fp = current.get("options_fingerprint")
    prev_fp = previous.get("options_fingerprint")

    curr_rules = {r.get("id") for r in current.get("rule_catalog", []) if isinstance(r, dict)}
    prev_rules = {r.get("id") for r in previous.get("rule_catalog", []) if isinstance(r, dict)}

    return {
        "current_run_id": current.get("run_id"),
        "previous_run_id": previous.get("run_id"),
        "options_changed": curr_fp != prev_fp,
        "rules_added": sorted(str(r) for r in curr_rules - prev_rules),
        "rules_removed": sorted(str(r) for r in prev_rules - curr_rules),
        "trace_summary_delta": _count_delta(
            current.get("trace_summary"), previous.get("trace_summary")
        ),
        "element_count_delta": _count_delta(
            current.get("element_counts"), previous.get("element_counts")
        ),
        "errors_count_delta": curr_errors - prev_errors,
    }
