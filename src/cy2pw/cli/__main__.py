"""
Main Entry Point for the cy2pw CLI.

This module handles argument parsing and dispatches to specific command
handlers defined in `cy2pw.cli.commands`.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from cy2pw.config import parse_cli_key_values
from cy2pw.cli import commands
from cy2pw import __version__


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Parses arguments via argparse and calls the appropriate handler function.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 for success, non-zero for failure).
  """
  parser = argparse.ArgumentParser(description="cy2pw: Cypress to Playwright Test migration")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: CONVERT ---
  cmd_conv = subparsers.add_parser("convert", help="Convert a Cypress spec file or directory")
  cmd_conv.add_argument("path", type=Path, help="Input spec file or directory")
  cmd_conv.add_argument("--out", type=Path, help="Output destination (file or dir)")
  cmd_conv.add_argument(
    "--json-report", type=Path, default=None, help="Save per-file summaries and units to a JSON file."
  )
  cmd_conv.add_argument(
    "--json-trace", type=Path, default=None, help="Dump full execution trace (phases, matches, edits) to a JSON file."
  )
  cmd_conv.add_argument(
    "--config",
    nargs="*",
    help="Configuration overrides in key=value format (e.g. convert_test_structure=False)",
  )

  # --- Command: SCAN ---
  cmd_scan = subparsers.add_parser("scan", help="List convertible patterns without converting")
  cmd_scan.add_argument("path", type=Path, help="Input spec file or directory")

  args = parser.parse_args(argv)

  if args.command == "convert":
    settings = parse_cli_key_values(args.config)
    return commands.handle_convert(args.path, args.out, settings, args.json_report, args.json_trace)

  elif args.command == "scan":
    return commands.handle_scan(args.path)

  return 0


if __name__ == "__main__":
  sys.exit(main())
