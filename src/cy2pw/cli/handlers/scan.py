"""
Scan Command Handler.

Lists the patterns each family would convert, without rewriting anything.
Useful to size a migration before running it.
"""

from pathlib import Path
from typing import Dict

from rich.markup import escape
from rich.table import Table

from cy2pw.cli.handlers.convert import collect_spec_files
from cy2pw.config import RuntimeConfig
from cy2pw.core.extractor import PatternExtractor
from cy2pw.utils.console import console, log_error, log_info, log_warning

SNIPPET_WIDTH = 60


def _snippet(text: str) -> str:
  first_line = text.strip().splitlines()[0] if text.strip() else ""
  if len(first_line) > SNIPPET_WIDTH:
    first_line = first_line[: SNIPPET_WIDTH - 3] + "..."
  return first_line


def handle_scan(path: Path) -> int:
  """
  Scans a spec file or directory and prints detected patterns.

  Args:
      path: Input spec file or directory.

  Returns:
      int: Exit code (0 on success, 1 if the path does not exist or the
      configuration is invalid).
  """
  if not path.exists():
    log_error(f"Path not found: {escape(str(path))}")
    return 1

  try:
    config = RuntimeConfig.load(search_path=path if path.is_dir() else path.parent)
  except ValueError as e:
    log_error(escape(str(e)))
    return 1

  files = [path] if path.is_file() else collect_spec_files(path, config.include_globs)
  if not files:
    log_warning(f"No spec files matching {config.include_globs} found in {escape(str(path))}")
    return 0

  log_info(f"Scanning {len(files)} files...")
  extractor = PatternExtractor()
  totals: Dict[str, int] = {}

  table = Table(title="Detected Patterns")
  table.add_column("File", style="cyan")
  table.add_column("Line", justify="right")
  table.add_column("Family", style="code")
  table.add_column("Complexity")
  table.add_column("Snippet", style="dim")

  for f in files:
    try:
      code = f.read_text("utf-8")
    except OSError as e:
      log_error(f"Failed to read {escape(f.name)}: {escape(str(e))}")
      continue

    name = f.name if path.is_file() else str(f.relative_to(path))
    for family, patterns in extractor.extract_all(code).items():
      totals[family] = totals.get(family, 0) + len(patterns)
      for pattern in patterns:
        line = code.count("\n", 0, pattern.start) + 1
        table.add_row(escape(name), str(line), family, pattern.complexity.value, escape(_snippet(pattern.raw_text)))

  console.print(table)
  console.print(f"[bold]Scan Summary for {escape(path.name)}[/bold]")
  for family, count in totals.items():
    console.print(f"{family + ':':<15} {count}")
  return 0
