"""
Convert Command Handler.

This module implements the logic for the `cy2pw convert` command.
It orchestrates:
1. Configuration loading (pyproject.toml plus CLI overrides).
2. Spec discovery for directory inputs.
3. Conversion via the `ComplexPatternConverter`.
4. Output writing, JSON reports and trace logging.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.markup import escape
from rich.table import Table

from cy2pw.config import RuntimeConfig
from cy2pw.core.converter import ComplexPatternConverter
from cy2pw.core.models import FileConversionResult
from cy2pw.utils.console import (
  console,
  log_info,
  log_success,
  log_error,
  log_warning,
)


def handle_convert(
  input_path: Path,
  output_path: Optional[Path],
  settings: Dict[str, Any],
  json_report_path: Optional[Path] = None,
  json_trace_path: Optional[Path] = None,
) -> int:
  """
  Handles the 'convert' command execution.

  Args:
      input_path: Path to the spec file or directory to convert.
      output_path: Where converted code is saved. Single files go to stdout
          when omitted; directories require it.
      settings: Configuration overrides from `--config key=value`.
      json_report_path: Optional path for a JSON report of all results.
      json_trace_path: Optional path to dump execution trace JSON. For
          directories, traces are written next to each output file.

  Returns:
      int: Exit code (0 for success, 1 when the input is missing, the
      configuration is invalid or any file fails validation).
  """
  if not input_path.exists():
    log_error(f"Input not found: {escape(str(input_path))}")
    return 1

  try:
    config = RuntimeConfig.load(
      search_path=input_path if input_path.is_dir() else input_path.parent,
      overrides=settings,
    )
  except ValueError as e:
    log_error(escape(str(e)))
    return 1

  converter = ComplexPatternConverter(config)
  batch_results: Dict[str, FileConversionResult] = {}

  if input_path.is_file():
    result = _convert_single_file(input_path, output_path, converter, json_trace_path)
    batch_results[input_path.name] = result

  else:
    if not output_path:
      log_error("Directory conversion requires --out destination directory.")
      return 1

    spec_files = collect_spec_files(input_path, config.include_globs)
    if not spec_files:
      log_warning(f"No spec files matching {config.include_globs} found in {escape(str(input_path))}")
      return 0

    log_info(f"Processing {len(spec_files)} files from [path]{escape(str(input_path))}[/path]...")

    for src_file in spec_files:
      rel_path = playwright_file_name(src_file.relative_to(input_path))
      dest_file = output_path / rel_path
      batch_trace = dest_file.with_suffix(".trace.json") if json_trace_path else None
      result = _convert_single_file(src_file, dest_file, converter, batch_trace)
      batch_results[str(src_file.relative_to(input_path))] = result

  _print_batch_summary(batch_results)
  if json_report_path:
    _write_json(json_report_path, {name: _report_entry(res) for name, res in batch_results.items()}, "Report")

  return 0 if all(res.is_valid for res in batch_results.values()) else 1


def collect_spec_files(root: Path, include_globs: List[str]) -> List[Path]:
  """
  Finds spec files under `root`.

  Args:
      root: Directory to search.
      include_globs: Glob patterns relative to `root`.

  Returns:
      List[Path]: Matching files, deduplicated and sorted.
  """
  found = set()
  for pattern in include_globs:
    found.update(p for p in root.glob(pattern) if p.is_file())
  return sorted(found)


def playwright_file_name(path: Path) -> Path:
  """Renames `login.cy.js` to `login.spec.js`; other names are kept."""
  return path.with_name(path.name.replace(".cy.", ".spec."))


def _convert_single_file(
  input_path: Path,
  output_path: Optional[Path],
  converter: ComplexPatternConverter,
  json_trace_path: Optional[Path] = None,
) -> FileConversionResult:
  """
  Converts one file and writes its output.

  Args:
      input_path: Source spec path.
      output_path: Destination file path; stdout when None.
      converter: Shared converter instance.
      json_trace_path: Path to save trace event logs.

  Returns:
      FileConversionResult: The result. Read errors yield an invalid,
      failed result instead of raising.
  """
  try:
    result = converter.convert_file(input_path)
  except OSError as e:
    log_error(f"Failed to read [path]{escape(str(input_path))}[/path]: {escape(str(e))}")
    return FileConversionResult(
      file_path=str(input_path),
      is_valid=False,
      conversion_succeeded=False,
      validation_errors=[f"Read error: {e}"],
    )

  if json_trace_path and result.trace_events:
    _write_json(json_trace_path, result.trace_events, "Trace")

  if output_path:
    try:
      output_path.parent.mkdir(parents=True, exist_ok=True)
      output_path.write_text(result.converted_code, encoding="utf-8")
    except OSError as e:
      log_error(f"Failed to write [path]{escape(str(output_path))}[/path]: {escape(str(e))}")
      return result.model_copy(
        update={"conversion_succeeded": False, "validation_errors": [*result.validation_errors, f"Write error: {e}"]}
      )
    log_success(f"Converted: [path]{escape(str(input_path))}[/path] -> [path]{escape(str(output_path))}[/path]")
  else:
    print(result.converted_code)

  return result


def _report_entry(result: FileConversionResult) -> Dict[str, Any]:
  """JSON-ready view of a result without the source texts and trace."""
  entry = result.model_dump(mode="json", exclude={"original_code", "converted_code", "trace_events"})
  entry["has_manual_review"] = result.has_manual_review
  return entry


def _write_json(path: Path, payload: Any, label: str) -> None:
  try:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wt", encoding="utf-8") as f:
      json.dump(payload, f, indent=2)
    log_info(f"{label} saved to [path]{escape(str(path))}[/path]")
  except OSError as e:
    log_error(f"Failed to write {label.lower()}: {escape(str(e))}")


def _print_batch_summary(results: Dict[str, FileConversionResult]) -> None:
  """
  Renders a summary table of conversion results to the console.

  Only files with failed patterns, validation errors or manual review items
  are listed.

  Args:
      results: Dictionary mapping filenames to conversion results.
  """
  total = len(results)
  flagged = {
    name: res for name, res in results.items() if not res.conversion_succeeded or not res.is_valid or res.has_manual_review
  }

  if not flagged:
    log_success(f"Batch Complete: {total}/{total} files converted cleanly.")
    return

  table = Table(title="Conversion Report")
  table.add_column("File", style="cyan")
  table.add_column("Status", justify="center")
  table.add_column("Patterns", justify="right")
  table.add_column("Success", justify="right")
  table.add_column("Review", justify="right", style="review")
  table.add_column("Issues", style="red")

  for filename, res in flagged.items():
    if not res.is_valid:
      status = "❌ Invalid"
    elif not res.conversion_succeeded:
      status = "⚠️ Partial"
    else:
      status = "📝 Review"
    issues = "; ".join(res.validation_errors) or "-"
    table.add_row(
      escape(filename),
      status,
      str(res.summary.total_patterns),
      f"{res.summary.success_rate}%",
      str(res.summary.manual_review_required),
      escape(issues),
    )

  console.print(table)
  clean = total - len(flagged)
  console.print(f"\n[bold]Summary:[/bold] {clean} Clean, {len(flagged)} need attention.")
