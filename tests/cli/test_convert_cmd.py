"""
Tests for the `convert` command handler.

Verifies:
1. Single file conversion to a file or stdout.
2. Directory conversion with renamed outputs.
3. JSON reports and traces.
4. Exit codes for missing inputs, invalid configs and invalid output.
"""

import json
from pathlib import Path

from cy2pw.cli.commands import (
  _print_batch_summary,
  collect_spec_files,
  handle_convert,
  playwright_file_name,
)
from cy2pw.config import DEFAULT_BASE_IMPORT
from cy2pw.core.models import FileConversionResult


def write(path, text):
  path.parent.mkdir(parents=True, exist_ok=True)
  path.write_text(text, encoding="utf-8")
  return path


def test_missing_input(tmp_path):
  assert handle_convert(tmp_path / "nope.cy.js", None, {}) == 1


def test_single_file_to_output(tmp_path):
  src = write(tmp_path / "login.cy.js", "cy.visit('/login');")
  out = tmp_path / "out" / "login.spec.js"
  assert handle_convert(src, out, {}) == 0
  assert out.read_text(encoding="utf-8") == f"{DEFAULT_BASE_IMPORT}\n\nawait page.goto('/login');"


def test_single_file_to_stdout(tmp_path, capsys):
  src = write(tmp_path / "login.cy.js", "cy.visit('/login');")
  assert handle_convert(src, None, {}) == 0
  assert "await page.goto('/login');" in capsys.readouterr().out


def test_directory_conversion(tmp_path):
  root = tmp_path / "cypress"
  write(root / "a.cy.js", "cy.visit('/a');")
  write(root / "nested" / "b.cy.ts", "cy.visit('/b');")
  write(root / "support" / "helper.js", "cy.visit('/c');")
  out = tmp_path / "out"

  assert handle_convert(root, out, {}) == 0
  assert (out / "a.spec.js").exists()
  assert (out / "nested" / "b.spec.ts").read_text(encoding="utf-8").endswith("await page.goto('/b');")
  assert not (out / "support").exists()


def test_directory_requires_output(tmp_path):
  write(tmp_path / "a.cy.js", "cy.visit('/a');")
  assert handle_convert(tmp_path, None, {}) == 1


def test_json_report(tmp_path):
  src = write(tmp_path / "login.cy.js", "cy.wait('@missing');")
  report = tmp_path / "report.json"
  handle_convert(src, tmp_path / "login.spec.js", {}, json_report_path=report)

  data = json.loads(report.read_text(encoding="utf-8"))
  entry = data["login.cy.js"]
  assert entry["summary"]["total_patterns"] == 1
  assert entry["has_manual_review"] is True
  assert "converted_code" not in entry
  assert "trace_events" not in entry


def test_json_trace(tmp_path):
  src = write(tmp_path / "login.cy.js", "cy.visit('/login');")
  trace = tmp_path / "trace.json"
  handle_convert(src, tmp_path / "login.spec.js", {}, json_trace_path=trace)

  events = json.loads(trace.read_text(encoding="utf-8"))
  assert events[0]["description"] == "Conversion Pipeline"


def test_invalid_output_fails(tmp_path):
  src = write(tmp_path / "broken.cy.js", "foo(;\ncy.visit('/');")
  assert handle_convert(src, tmp_path / "broken.spec.js", {}) == 1


def test_invalid_config_override(tmp_path):
  src = write(tmp_path / "login.cy.js", "cy.visit('/login');")
  assert handle_convert(src, None, {"base_import": "nope"}) == 1


def test_playwright_file_name():
  assert playwright_file_name(Path("e2e/login.cy.js")) == Path("e2e/login.spec.js")
  assert playwright_file_name(Path("helper.js")) == Path("helper.js")


def test_collect_spec_files(tmp_path):
  b = write(tmp_path / "b.cy.js", "")
  a = write(tmp_path / "sub" / "a.cy.js", "")
  write(tmp_path / "c.js", "")
  assert collect_spec_files(tmp_path, ["**/*.cy.js", "*.cy.js"]) == sorted([a, b])


def test_batch_summary_lists_flagged_files(captured_console):
  results = {
    "bad.cy.js": FileConversionResult(is_valid=False, conversion_succeeded=False, validation_errors=["Converted code is empty"]),
    "good.cy.js": FileConversionResult(),
  }
  _print_batch_summary(results)

  output = captured_console.getvalue()
  assert "Conversion Report" in output
  assert "bad.cy.js" in output
  assert "good.cy.js" not in output
  assert "1 Clean, 1 need attention." in output


def test_batch_summary_all_clean(captured_console):
  _print_batch_summary({"good.cy.js": FileConversionResult()})
  assert "Batch Complete: 1/1 files converted cleanly." in captured_console.getvalue()
