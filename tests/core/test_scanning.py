"""
Tests for the source scanning primitives.
"""

import pytest

from cy2pw.core.scanning import (
  apply_replacements,
  dedent_block,
  find_matching,
  has_conditional,
  has_early_return,
  mask_literals,
  normalize_span,
  rename_identifier,
  split_statements,
  split_top_level,
  split_trailing_return,
  strip_quotes,
)


def test_mask_blanks_string_contents():
  masked = mask_literals("cy.get('a(b')")
  assert masked == "cy.get('   ')"


def test_mask_blanks_comments_and_keeps_length():
  text = "x // (c\ny"
  masked = mask_literals(text)
  assert len(masked) == len(text)
  assert "(" not in masked
  assert masked.endswith("\ny")


def test_mask_blanks_regex_literal():
  assert mask_literals("const r = /a(b/;") == "const r = /   /;"


def test_find_matching_pairs_mixed_delimiters():
  assert find_matching("f(a, [b], {c})", 1) == 13


def test_find_matching_rejects_mismatch():
  assert find_matching("(]", 0) is None


def test_split_top_level_ignores_nested_commas():
  args = split_top_level("'a,b', fn(1, 2), { x: 1, y: 2 },")
  assert args == ["'a,b'", "fn(1, 2)", "{ x: 1, y: 2 }"]


def test_split_statements_keeps_continuations_and_blocks():
  body = "a();\nb()\n  .c();\nif (x) {\n  d();\n}"
  assert split_statements(body) == ["a();", "b()\n  .c();", "if (x) {\n  d();\n}"]


def test_apply_replacements_reindents_continuation_lines():
  text = "a\n  X\n"
  assert apply_replacements(text, [(4, 5, "one\ntwo")]) == "a\n  one\n  two\n"


def test_apply_replacements_rejects_overlap():
  with pytest.raises(ValueError):
    apply_replacements("abcdef", [(0, 3, "x"), (2, 4, "y")])


def test_rename_identifier_skips_members_and_strings():
  renamed = rename_identifier("$el.text() + '$el' + obj.$el", "$el", "element")
  assert renamed == "element.text() + '$el' + obj.$el"


def test_split_trailing_return():
  assert split_trailing_return("a();\nreturn x + 1;") == ("a();", "x + 1")
  assert split_trailing_return("a();") == ("a();", None)


def test_has_early_return():
  assert has_early_return("if (x) {\n  return;\n}\na();")
  assert not has_early_return("a();\nreturn b;")


def test_has_conditional():
  assert has_conditional("if (x) { y(); }")
  assert has_conditional("a ? b : c")
  assert not has_conditional("a?.b")
  assert not has_conditional("a ?? b")
  assert not has_conditional("log('if (x)')")


def test_normalize_span_dedents_continuation_lines():
  span = "cy.get(x).then(() => {\n      a();\n    });"
  assert normalize_span(span) == "cy.get(x).then(() => {\n  a();\n});"


def test_strip_quotes():
  assert strip_quotes("'@getUsers'") == "@getUsers"
  assert strip_quotes("name") == "name"


def test_dedent_block_trims_trailing_whitespace():
  assert dedent_block(" expect(a).to.be.ok; ") == "expect(a).to.be.ok;"
  assert dedent_block("\n    a(); \n    if (x) {  \n      b();\n    }\n  ") == "a();\nif (x) {\n  b();\n}"
