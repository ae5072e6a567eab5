"""
CLI Command Handlers Facade.

Re-exports handlers from `cy2pw.cli.handlers` so the dispatcher (and tests
patching it) address a single module.
"""

from cy2pw.cli.handlers.convert import (
  handle_convert,
  collect_spec_files,
  playwright_file_name,
  _convert_single_file,
  _print_batch_summary,
)
from cy2pw.cli.handlers.scan import handle_scan

__all__ = [
  "_convert_single_file",
  "_print_batch_summary",
  "collect_spec_files",
  "handle_convert",
  "handle_scan",
  "playwright_file_name",
]
