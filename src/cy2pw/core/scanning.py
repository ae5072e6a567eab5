"""
Source Scanning Primitives.

Structural helpers for locating and slicing JavaScript/TypeScript fragments
without a full parser. Every search in the engine runs against a *masked* copy
of the source, in which the contents of strings, template literals, regex
literals and comments are blanked out. Offsets in the masked copy line up 1:1
with the original text, so a span found in the masked copy can be sliced out
of the original.

Capabilities:
1.  **Masking**: `mask_literals` hides literal contents from structural scans.
2.  **Delimiter Matching**: `find_matching` pairs `()`, `[]` and `{}`.
3.  **Splitting**: top-level argument lists and logical statements.
4.  **Literal Helpers**: quoting, unquoting and literal classification.
5.  **Text Surgery**: indentation helpers and end-to-start span replacement.
"""

import re
import textwrap
from typing import List, Optional, Sequence, Tuple

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")": "(", "]": "[", "}": "{"}

_REGEX_PRECEDERS = set("(,=:[!&|?{};+-*%<>~^")
_REGEX_KEYWORDS = {"return", "typeof", "case", "do", "else", "in", "of", "void", "yield", "await", "delete", "new"}

_IDENT_CHARS = re.compile(r"[\w$]")

_REGEX_LITERAL = re.compile(r"/(?:\\.|\[(?:\\.|[^\]\\\n])*\]|[^/\\\n\[])+/[a-z]*")

# Words that keep a statement going when they open the next line.
_CONTINUATION_WORDS = ("else", "catch", "finally")
_CONTINUATION_TAIL = tuple(",+-*/%&|=(<>?:[.{")


def _blank(chars: List[str], start: int, end: int) -> None:
  for i in range(start, end):
    if chars[i] != "\n":
      chars[i] = " "


def _skip_string(text: str, start: int) -> int:
  """Returns the index just past the literal opened at `start`."""
  quote = text[start]
  i = start + 1
  n = len(text)
  while i < n:
    ch = text[i]
    if ch == "\\":
      i += 2
      continue
    if ch == quote:
      return i + 1
    if ch == "\n" and quote != "`":
      return i
    i += 1
  return n


def _regex_allowed(text: str, index: int) -> bool:
  """Decides whether a `/` at `index` opens a regex literal."""
  j = index - 1
  while j >= 0 and text[j] in " \t\r\n":
    j -= 1
  if j < 0:
    return True
  prev = text[j]
  if prev in _REGEX_PRECEDERS:
    return True
  if _IDENT_CHARS.match(prev):
    k = j
    while k >= 0 and _IDENT_CHARS.match(text[k]):
      k -= 1
    return text[k + 1 : j + 1] in _REGEX_KEYWORDS
  return False


def _skip_regex(text: str, start: int) -> Optional[int]:
  i = start + 1
  n = len(text)
  in_class = False
  while i < n:
    ch = text[i]
    if ch == "\\":
      i += 2
      continue
    if ch == "\n":
      return None
    if ch == "[":
      in_class = True
    elif ch == "]":
      in_class = False
    elif ch == "/" and not in_class:
      i += 1
      while i < n and text[i].isalpha():
        i += 1
      return i
    i += 1
  return None


def mask_literals(text: str) -> str:
  """
  Returns a copy of `text` with literal and comment contents blanked.

  Quote characters and regex slashes are kept so literals remain visible as
  tokens; everything between them becomes spaces. Comments are blanked
  entirely. Newlines always survive, so line structure is preserved.

  Args:
      text: JavaScript or TypeScript source.

  Returns:
      str: A string of identical length safe for structural scanning.
  """
  chars = list(text)
  i = 0
  n = len(text)
  while i < n:
    ch = text[i]
    nxt = text[i + 1] if i + 1 < n else ""
    if ch == "/" and nxt == "/":
      end = text.find("\n", i)
      end = n if end == -1 else end
      _blank(chars, i, end)
      i = end
      continue
    if ch == "/" and nxt == "*":
      end = text.find("*/", i + 2)
      end = n if end == -1 else end + 2
      _blank(chars, i, end)
      i = end
      continue
    if ch in "'\"`":
      end = _skip_string(text, i)
      closed = end <= n and end - 1 > i and text[end - 1] == ch
      _blank(chars, i + 1, end - 1 if closed else end)
      i = end
      continue
    if ch == "/" and _regex_allowed(text, i):
      end = _skip_regex(text, i)
      if end is not None:
        close = text.rfind("/", i + 1, end)
        _blank(chars, i + 1, close)
        i = end
        continue
    i += 1
  return "".join(chars)


def find_matching(masked: str, open_index: int) -> Optional[int]:
  """
  Finds the delimiter closing the one at `open_index`.

  Args:
      masked: Masked source (see `mask_literals`).
      open_index: Index of an opening `(`, `[` or `{`.

  Returns:
      Optional[int]: Index of the matching closer, or None when the input is
      truncated or the delimiters are mismatched.
  """
  if open_index >= len(masked) or masked[open_index] not in OPENERS:
    return None
  stack: List[str] = []
  for i in range(open_index, len(masked)):
    ch = masked[i]
    if ch in OPENERS:
      stack.append(ch)
    elif ch in CLOSERS:
      if not stack or stack[-1] != CLOSERS[ch]:
        return None
      stack.pop()
      if not stack:
        return i
  return None


def split_top_level(text: str, separator: str = ",") -> List[str]:
  """
  Splits `text` on `separator` occurrences that sit at delimiter depth zero.

  Empty trailing pieces (trailing commas) are dropped.

  Args:
      text: Raw argument or property list text.
      separator: Single separator character.

  Returns:
      List[str]: Stripped pieces of the original text.
  """
  masked = mask_literals(text)
  pieces = []
  depth = 0
  last = 0
  for i, ch in enumerate(masked):
    if ch in OPENERS:
      depth += 1
    elif ch in CLOSERS:
      depth -= 1
    elif ch == separator and depth == 0:
      pieces.append(text[last:i].strip())
      last = i + 1
  pieces.append(text[last:].strip())
  while pieces and not pieces[-1]:
    pieces.pop()
  return pieces


def find_top_level(text: str, char: str) -> int:
  """Index of the first depth-zero occurrence of `char`, or -1."""
  masked = mask_literals(text)
  depth = 0
  for i, ch in enumerate(masked):
    if ch == char and depth == 0:
      return i
    if ch in OPENERS:
      depth += 1
    elif ch in CLOSERS:
      depth -= 1
  return -1


def split_statements(body: str) -> List[str]:
  """
  Splits a block body into logical statements.

  A statement ends at a depth-zero `;` or at a depth-zero newline, unless the
  next line continues the statement (leading `.`, `else`, `catch`, ...) or the
  current line ends with an operator. Multi-line blocks such as `if (...) {`
  stay together as one statement.

  Args:
      body: Dedented callback body.

  Returns:
      List[str]: Statements with surrounding blank lines removed.
  """
  masked = mask_literals(body)
  statements = []
  depth = 0
  start = 0
  n = len(body)
  i = 0
  while i < n:
    ch = masked[i]
    if ch in OPENERS:
      depth += 1
    elif ch in CLOSERS:
      depth -= 1
    elif depth == 0 and ch == ";":
      statements.append(body[start : i + 1])
      start = i + 1
    elif depth == 0 and ch == "\n":
      current = masked[start:i].strip()
      if current and not _continues(masked, i, current):
        statements.append(body[start:i])
        start = i + 1
    i += 1
  statements.append(body[start:])
  return [s.strip("\n").rstrip() for s in statements if s.strip()]


def _continues(masked: str, newline_index: int, current: str) -> bool:
  if current.endswith(_CONTINUATION_TAIL):
    return True
  rest = masked[newline_index + 1 :].lstrip()
  if rest.startswith(".") or rest.startswith("?"):
    return True
  return any(re.match(rf"{word}\b", rest) for word in _CONTINUATION_WORDS)


def is_string_literal(value: str) -> bool:
  value = value.strip()
  if len(value) < 2 or value[0] not in "'\"`" or value[-1] != value[0]:
    return False
  return _skip_string(value, 0) == len(value)


def is_regex_literal(value: str) -> bool:
  return bool(_REGEX_LITERAL.fullmatch(value.strip()))


def strip_quotes(value: str) -> str:
  """
  Removes one layer of matching quotes from a literal.

  Args:
      value: Possibly quoted text such as `'@getUsers'`.

  Returns:
      str: The unquoted content, or the stripped input when it is not a
      string literal.
  """
  value = value.strip()
  if is_string_literal(value):
    inner = value[1:-1]
    return inner.replace("\\" + value[0], value[0])
  return value


def js_string(value: str) -> str:
  """Renders a Python string as a single-quoted JavaScript literal."""
  escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
  return f"'{escaped}'"


def is_identifier(value: str) -> bool:
  return bool(re.fullmatch(r"[A-Za-z_$][\w$]*", value.strip()))


def dedent_block(text: str) -> str:
  """Dedents a callback body and trims surrounding blank lines and trailing whitespace."""
  lines = [line.rstrip() for line in text.split("\n")]
  while lines and not lines[0].strip():
    lines.pop(0)
  while lines and not lines[-1].strip():
    lines.pop()
  return textwrap.dedent("\n".join(lines))


def indent_block(text: str, indent: str, first_line: bool = True) -> str:
  """
  Prefixes every non-empty line of `text` with `indent`.

  Args:
      text: Block to indent.
      indent: Whitespace prefix.
      first_line: If False, the first line is left untouched (used when the
          block is spliced at an already-indented position).

  Returns:
      str: The indented block.
  """
  lines = text.split("\n")
  out = []
  for index, line in enumerate(lines):
    if not line.strip() or (index == 0 and not first_line):
      out.append(line)
    else:
      out.append(indent + line)
  return "\n".join(out)


def line_indent(text: str, index: int) -> str:
  """Leading whitespace of the line containing `index`."""
  line_start = text.rfind("\n", 0, index) + 1
  match = re.match(r"[ \t]*", text[line_start:])
  return match.group(0) if match else ""


def at_statement_start(masked: str, index: int) -> bool:
  """True when only whitespace, `{`, `}` or `;` precede `index` on its line."""
  j = index - 1
  while j >= 0 and masked[j] in " \t":
    j -= 1
  return j < 0 or masked[j] in "\n{};"


def apply_replacements(text: str, replacements: Sequence[Tuple[int, int, str]]) -> str:
  """
  Splices replacement texts into `text`.

  All spans must refer to the same snapshot of `text` and must not overlap.
  Edits are applied from the end of the text towards the start so earlier
  offsets stay valid. Continuation lines of a multi-line replacement are
  re-indented to the indentation of the line the span starts on.

  Args:
      text: Buffer snapshot the spans were computed against.
      replacements: `(start, end, new_text)` tuples.

  Returns:
      str: The rewritten buffer.

  Raises:
      ValueError: If two spans overlap.
  """
  ordered = sorted(replacements, key=lambda r: r[0], reverse=True)
  result = text
  limit = len(text) + 1
  for start, end, new_text in ordered:
    if end > limit:
      raise ValueError(f"Overlapping replacement spans at offset {start}")
    indent = line_indent(text, start)
    result = result[:start] + indent_block(new_text, indent, first_line=False) + result[end:]
    limit = start
  return result


def rename_identifier(text: str, old: str, new: str) -> str:
  """
  Renames free uses of identifier `old` to `new`.

  Member accesses (`obj.old`) and occurrences inside literals or comments
  are left alone.

  Args:
      text: Source fragment.
      old: Identifier to replace (may contain `$`).
      new: Replacement identifier.

  Returns:
      str: The rewritten fragment.
  """
  if old == new:
    return text
  masked = mask_literals(text)
  pattern = re.compile(rf"(?<![\w$.]){re.escape(old)}(?![\w$])")
  return apply_replacements(text, [(m.start(), m.end(), new) for m in pattern.finditer(masked)])


def split_trailing_return(body: str) -> Tuple[str, Optional[str]]:
  """
  Separates a final top-level `return X;` from a block body.

  Args:
      body: Dedented callback body.

  Returns:
      Tuple[str, Optional[str]]: The body without the return statement and
      the returned expression, or `(body, None)` when the body does not end
      with a value return.
  """
  statements = split_statements(body)
  if not statements:
    return body, None
  match = re.match(r"return\b\s*(.*?);?\s*$", statements[-1].strip(), re.DOTALL)
  if not match or not match.group(1).strip():
    return body, None
  index = body.rfind(statements[-1].strip())
  return body[:index].rstrip(), match.group(1).strip()


def has_early_return(body: str) -> bool:
  """True when a `return` appears anywhere but as the last top-level statement."""
  remaining, _ = split_trailing_return(body)
  statements = split_statements(remaining)
  if statements and re.fullmatch(r"return\s*;?", statements[-1].strip()):
    statements = statements[:-1]
  return any(re.search(r"(?<![\w$.])return\b", mask_literals(s)) for s in statements)


def normalize_span(text: str) -> str:
  """
  Makes a span's continuation lines relative to its first line.

  Extracted spans start at their first token, so the first line carries no
  indentation while later lines keep their absolute indentation. Removing
  the common indentation of the later lines lets the span be re-indented
  wherever it is spliced.

  Args:
      text: Span text as extracted from a file.

  Returns:
      str: The span with continuation lines dedented.
  """
  first, sep, rest = text.partition("\n")
  if not sep:
    return text
  return first + "\n" + textwrap.dedent(rest)


_CONDITIONAL_RE = re.compile(r"(?<![\w$.])(?:if|switch)\s*\(|(?<![?])\?(?![.?:])")


def has_conditional(text: str) -> bool:
  """True when `text` branches (`if`, `switch` or a ternary) outside literals."""
  return bool(_CONDITIONAL_RE.search(mask_literals(text)))
