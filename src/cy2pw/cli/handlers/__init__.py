from .convert import handle_convert, collect_spec_files, playwright_file_name, _convert_single_file, _print_batch_summary
from .scan import handle_scan

__all__ = [
  "_convert_single_file",
  "_print_batch_summary",
  "collect_spec_files",
  "handle_convert",
  "handle_scan",
  "playwright_file_name",
]
