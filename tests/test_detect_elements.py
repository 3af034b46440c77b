"""Tests for scripts/detect_elements.py (CLI driver)."""
from __future__ import annotations

import base64
from pathlib import Path
from typing import Any

import orjson
import pytest

from docimport.io_utils import load_json, load_jsonl, save_jsonl
from scripts.detect_elements import build_parser, main


def _write_input(path: Path, records: list[dict[str, Any]]) -> Path:
    save_jsonl(records, path)
    return path


_DOCUMENT: list[dict[str, Any]] = [
    {"style_id": "Title", "text": "A Study of Things"},
    {"style_id": "Title", "text": "Abstract"},
    {"text": "We study things."},
    {"style_id": "Heading1", "text": "Introduction"},
    {"text": "x = compute()", "font_family": "Consolas"},
    {"body_type": "table", "rows": [["a", "b"], ["c", "d"]], "has_header_row": True},
    {"drawings": [{"data": base64.b64encode(b"png").decode("ascii"), "mime_type": "image/png"}]},
    {"style_id": "Heading1", "text": "References"},
    {"text": "[1] Smith, J. (2020). Things. Journal."},
]


class TestParser:
    def test_disable_repeatable(self) -> None:
        args = build_parser().parse_args(["--disable", "a", "--disable", "b"])
        assert args.disable == ["a", "b"]


class TestMain:
    def test_full_run(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        input_path = _write_input(tmp_path / "doc.jsonl", _DOCUMENT)
        out_dir = tmp_path / "out"

        assert main(["--input", str(input_path), "--output-dir", str(out_dir)]) == 0

        summary = orjson.loads(capsys.readouterr().out)
        assert summary["body_elements"] == len(_DOCUMENT)
        assert summary["errors_count"] == 0

        elements = load_jsonl(out_dir / "elements.jsonl")
        kinds = [e["kind"] for e in elements]
        assert kinds == [
            "paragraph", "abstract", "heading", "code_block", "table", "image",
            "heading", "bibliography_entry",
        ]
        assert [e["order"] for e in elements] == list(range(len(elements)))
        assert elements[5]["data"] == base64.b64encode(b"png").decode("ascii")

        traces = load_jsonl(out_dir / "traces.jsonl")
        assert len(traces) == len(_DOCUMENT)
        assert traces[1]["elements_produced"] == 0
        assert traces[5]["matched_rule_id"] == "n/a"

        manifest = load_json(out_dir / "run_manifest.json")
        assert manifest["run_id"] == summary["run_id"]
        assert manifest["element_counts"]["heading"] == 2

    def test_disable_rule(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        input_path = _write_input(
            tmp_path / "doc.jsonl", [{"text": "x = 1", "font_family": "Consolas"}]
        )
        out_dir = tmp_path / "out"
        rc = main([
            "--input", str(input_path), "--output-dir", str(out_dir),
            "--disable", "code.font",
        ])
        assert rc == 0
        [element] = load_jsonl(out_dir / "elements.jsonl")
        assert element["kind"] == "paragraph"
        manifest = load_json(out_dir / "run_manifest.json")
        assert "code.font" not in {r["id"] for r in manifest["rule_catalog"]}
        assert manifest["options"]["disabled_rule_ids"] == ["code.font"]

    def test_options_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        options_path = tmp_path / "options.json"
        options_path.write_bytes(orjson.dumps({"detect_code_by_font": False}))
        input_path = _write_input(
            tmp_path / "doc.jsonl", [{"text": "x = 1", "font_family": "Consolas"}]
        )
        out_dir = tmp_path / "out"
        rc = main([
            "--input", str(input_path), "--output-dir", str(out_dir),
            "--options", str(options_path),
        ])
        assert rc == 0
        [element] = load_jsonl(out_dir / "elements.jsonl")
        assert element["kind"] == "paragraph"

    def test_list_rules(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--list-rules", "--disable", "image"]) == 0
        catalog = orjson.loads(capsys.readouterr().out)
        assert catalog[0]["id"] == "pagebreak"
        assert catalog[-1]["id"] == "paragraph"
        enabled = {r["id"]: r["enabled"] for r in catalog}
        assert enabled["image"] is False
        assert enabled["code.font"] is True


class TestMainErrors:
    def test_missing_input(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        rc = main(["--input", str(tmp_path / "nope.jsonl"), "--output-dir", str(tmp_path)])
        assert rc == 1
        assert "input not found" in capsys.readouterr().err

    def test_requires_input(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "--input and --output-dir are required" in capsys.readouterr().err

    def test_malformed_jsonl(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        input_path = tmp_path / "doc.jsonl"
        input_path.write_text("{not json}\n")
        rc = main(["--input", str(input_path), "--output-dir", str(tmp_path / "out")])
        assert rc == 1
        assert "doc.jsonl:1" in capsys.readouterr().err

    def test_malformed_record(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        input_path = _write_input(
            tmp_path / "doc.jsonl",
            [{"text": "x", "formatting": [{"start": 0, "length": 1, "type": "blink"}]}],
        )
        rc = main(["--input", str(input_path), "--output-dir", str(tmp_path / "out")])
        assert rc == 1
        assert "malformed input record" in capsys.readouterr().err

    def test_bad_options(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        options_path = tmp_path / "options.json"
        options_path.write_bytes(orjson.dumps({"unknown_flag": True}))
        rc = main(["--options", str(options_path), "--list-rules"])
        assert rc == 1
        assert "unknown_flag" in capsys.readouterr().err
